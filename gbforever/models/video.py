from sqlalchemy import String, Integer, BigInteger, DateTime, Text, func, JSON
from sqlalchemy.orm import Mapped, mapped_column
from gbforever.db.base import Base

class Video(Base):
    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Archive identifier, the ingestion identity
    identifier: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String, nullable=False)

    date: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    creator: Mapped[str | None] = mapped_column(String, nullable=True)
    item_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    external_identifier: Mapped[str | None] = mapped_column(String, nullable=True)
    collections: Mapped[list | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
