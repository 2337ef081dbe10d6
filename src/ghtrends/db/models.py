from datetime import datetime
from sqlalchemy import Integer, String, TIMESTAMP, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Owner, repository, language and category names all fit this width
NAME_LENGTH = 64


class Base(DeclarativeBase):
    pass  # shared metadata lives here


class UpdateBatch(Base):
    """One ingestion run; every fact row written during the run points here."""

    __tablename__ = "githubupdate"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        "create_date", TIMESTAMP, server_default=func.current_timestamp(), nullable=False
    )


class Language(Base):
    """Programming language; natural key is `name`."""

    __tablename__ = "proglang"
    __table_args__ = (UniqueConstraint("name", name="proglang_name_uq"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(NAME_LENGTH))
    created_at: Mapped[datetime] = mapped_column(
        "create_date", TIMESTAMP, server_default=func.current_timestamp(), nullable=False
    )


class Repository(Base):
    """GitHub repository; natural key is (`owner`, `name`)."""

    __tablename__ = "repo"
    __table_args__ = (
        UniqueConstraint("username", "reponame", name="repo_username_reponame_uq"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column("username", String(NAME_LENGTH))
    name: Mapped[str] = mapped_column("reponame", String(NAME_LENGTH))
    created_at: Mapped[datetime] = mapped_column(
        "create_date", TIMESTAMP, server_default=func.current_timestamp(), nullable=False
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class Category(Base):
    """Ranking-list kind; natural key is `name`."""

    __tablename__ = "topcategory"
    __table_args__ = (UniqueConstraint("name", name="topcategory_name_uq"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(NAME_LENGTH))
    created_at: Mapped[datetime] = mapped_column(
        "create_date", TIMESTAMP, server_default=func.current_timestamp(), nullable=False
    )


class TopProjectFact(Base):
    """Position of one repository in one ranking list of one language, per batch."""

    __tablename__ = "repoupdate"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        "update_id",
        ForeignKey("githubupdate.id", name="projectupdate_githubupdate_fk"),
        nullable=False,
    )
    language_id: Mapped[int] = mapped_column(
        "proglang_id",
        ForeignKey("proglang.id", name="projectupdate_language_fk"),
        nullable=False,
    )
    repository_id: Mapped[int] = mapped_column(
        "repo_id",
        ForeignKey("repo.id", name="projectupdate_repository_fk"),
        nullable=False,
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("topcategory.id", name="projectupdate_topcategory_fk"),
        nullable=False,
    )
    rank: Mapped[int | None] = mapped_column(Integer)

    repository = relationship("Repository")
    category = relationship("Category")


class LanguageSummaryFact(Base):
    __tablename__ = "languageupdate"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        "update_id",
        ForeignKey("githubupdate.id", name="languageupdate_githubupdate_fk"),
        nullable=False,
    )
    language_id: Mapped[int] = mapped_column(
        "proglang_id",
        ForeignKey("proglang.id", name="languageupdate_language_fk"),
        nullable=False,
    )
    project_count: Mapped[int] = mapped_column("num_projects", Integer, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)

    language = relationship("Language")


# Creation order: dimensions and batches before the facts that reference them
ALL_TABLES = (
    UpdateBatch.__table__,
    Language.__table__,
    Repository.__table__,
    Category.__table__,
    TopProjectFact.__table__,
    LanguageSummaryFact.__table__,
)
