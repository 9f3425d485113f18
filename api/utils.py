from pathlib import PurePosixPath


def job_id_for(object_path: str) -> str:
    """Stable job id: the object's file name without extension."""
    return PurePosixPath(object_path).stem


def output_path_for(object_path: str, intake_prefix: str, output_prefix: str, suffix: str = ".mp4") -> str:
    """
    Swap the intake prefix for the output prefix and normalise the extension,
    e.g. videos/uploads/a.mov -> videos/encoded/a.mp4.
    """
    if not object_path.startswith(intake_prefix):
        raise ValueError(f"{object_path!r} is not under {intake_prefix!r}")
    rel = PurePosixPath(object_path[len(intake_prefix):])
    return output_prefix + str(rel.with_suffix(suffix))


def format_size(num_bytes: int | None) -> str:
    if num_bytes is None:
        return "unknown"
    return f"{num_bytes / (1024 * 1024):.2f} MB"
