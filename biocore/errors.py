"""Error types shared across the recognition core."""


class FatalError(RuntimeError):
    """Configuration or precondition defect that aborts the current operation.

    Raised for malformed algorithm descriptors, missing transforms or distances,
    unknown plugins, missing shard placeholders and similarity matrices that do
    not match their record lists. Callers decide whether to exit.
    """


class TemplateFailure(Exception):
    """Recoverable failure to enroll a single record.

    Transforms raise this from ``project_template``; the record is kept with its
    failure-to-enroll flag set and the surrounding pass continues.
    """
