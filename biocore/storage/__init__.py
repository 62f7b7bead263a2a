from .template import File, FileList, Template, TemplateList
from .gallery import (
    BaseGallery,
    BinaryGallery,
    CsvGallery,
    GALLERY_REGISTRY,
    MemoryGallery,
    NumpyGallery,
    get_gallery_class,
    make_gallery,
    register_gallery,
)
from .output import (
    BaseOutput,
    CsvOutput,
    MatrixOutput,
    MemoryOutput,
    NpzOutput,
    OUTPUT_REGISTRY,
    get_output_class,
    make_output,
    read_simmat,
    register_output,
)
from .model_io import ModelReader, ModelWriter, read_model_file, write_model_file

__all__ = [
    "File",
    "FileList",
    "Template",
    "TemplateList",
    "BaseGallery",
    "BinaryGallery",
    "CsvGallery",
    "MemoryGallery",
    "NumpyGallery",
    "GALLERY_REGISTRY",
    "get_gallery_class",
    "make_gallery",
    "register_gallery",
    "BaseOutput",
    "MatrixOutput",
    "NpzOutput",
    "CsvOutput",
    "MemoryOutput",
    "OUTPUT_REGISTRY",
    "get_output_class",
    "make_output",
    "read_simmat",
    "register_output",
    "ModelReader",
    "ModelWriter",
    "read_model_file",
    "write_model_file",
]
