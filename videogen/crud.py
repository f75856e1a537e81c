from sqlalchemy import select, update
from sqlalchemy.orm import Session

from videogen.errors import RecordNotFound
from videogen.models import AspectRatio, GenerationStatus, VideoGeneration


def create_generation(
    db: Session,
    *,
    prompt: str,
    job_id: str,
    aspect_ratio: AspectRatio,
    duration: int,
    image_url: str | None = None,
    created_by: str | None = None,
) -> VideoGeneration:
    generation = VideoGeneration(
        prompt=prompt,
        job_id=job_id,
        aspect_ratio=aspect_ratio,
        duration=duration,
        image_url=image_url,
        created_by=created_by,
        status=GenerationStatus.PROCESSING,
    )
    db.add(generation)
    db.commit()
    db.refresh(generation)
    return generation


def get_generation(db: Session, generation_id: str) -> VideoGeneration | None:
    return db.get(VideoGeneration, generation_id)


def list_generations(
    db: Session,
    *,
    created_by: str | None = None,
    limit: int = 50,
) -> list[VideoGeneration]:
    stmt = select(VideoGeneration)
    if created_by is not None:
        stmt = stmt.where(VideoGeneration.created_by == created_by)
    stmt = stmt.order_by(VideoGeneration.created_at.desc(), VideoGeneration.id).limit(limit)
    return list(db.scalars(stmt))


def update_generation(db: Session, generation_id: str, **fields) -> VideoGeneration:
    generation = get_generation(db, generation_id)
    if generation is None:
        raise RecordNotFound(generation_id)
    if "job_id" in fields and fields["job_id"] != generation.job_id:
        raise ValueError("job_id cannot be changed once set")

    for key, value in fields.items():
        setattr(generation, key, value)

    db.add(generation)
    db.commit()
    db.refresh(generation)
    return generation


def finalize_generation(
    db: Session,
    generation_id: str,
    *,
    status: GenerationStatus,
    video_url: str | None = None,
    error_message: str | None = None,
) -> tuple[VideoGeneration, bool]:
    """Move a processing record into a terminal state.

    The write only happens while the stored status is still ``processing``, so
    a record finalized by another poller keeps its first terminal state. Returns
    the stored record and whether this call performed the transition.
    """
    if not status.is_terminal:
        raise ValueError(f"not a terminal status: {status.value}")
    if status == GenerationStatus.COMPLETED and not video_url:
        raise ValueError("video_url is required to complete a generation")
    if status == GenerationStatus.FAILED and not error_message:
        raise ValueError("error_message is required to fail a generation")

    values = {"status": status}
    if status == GenerationStatus.COMPLETED:
        values["video_url"] = video_url
    else:
        values["error_message"] = error_message

    stmt = (
        update(VideoGeneration)
        .where(
            VideoGeneration.id == generation_id,
            VideoGeneration.status == GenerationStatus.PROCESSING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    generation = get_generation(db, generation_id)
    if generation is None:
        raise RecordNotFound(generation_id)
    return generation, result.rowcount == 1
