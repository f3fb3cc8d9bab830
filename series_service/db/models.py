from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    Float,
    ForeignKey,
    Index,
    JSON,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class DescribableMixin:
    id = Column(Integer, primary_key=True)
    identifier = Column(String, unique=True)
    name = Column(String)
    description = Column(Text)
    # locale -> label
    translations = Column(JSON)


class Service(DescribableMixin, Base):
    __tablename__ = "services"

    # comma separated raw values meaning "explicitly no measurement"
    no_data_values = Column(String)


class Procedure(DescribableMixin, Base):
    __tablename__ = "procedures"

    reference = Column(Boolean, default=False, nullable=False)


class Phenomenon(DescribableMixin, Base):
    __tablename__ = "phenomena"


class Feature(DescribableMixin, Base):
    __tablename__ = "features"

    longitude = Column(Float)
    latitude = Column(Float)


class Platform(DescribableMixin, Base):
    __tablename__ = "platforms"


class Offering(DescribableMixin, Base):
    __tablename__ = "offerings"


class Category(DescribableMixin, Base):
    __tablename__ = "categories"


dataset_references = Table(
    "dataset_references",
    Base.metadata,
    Column("dataset_id", Integer, ForeignKey("datasets.id"), primary_key=True),
    Column("reference_id", Integer, ForeignKey("datasets.id"), primary_key=True),
    Column("position", Integer, default=0, nullable=False),
)


class Dataset(Base):
    __tablename__ = "datasets"
    __table_args__ = (
        UniqueConstraint(
            "procedure_id",
            "phenomenon_id",
            "feature_id",
            "offering_id",
            "platform_id",
            "service_id",
            name="uq_dataset_identity",
        ),
    )

    id = Column(Integer, primary_key=True)
    identifier = Column(String, unique=True)
    value_type = Column(String, nullable=False, default="quantity")
    observation_type = Column(String, nullable=False, default="simple")
    unit = Column(String)
    number_of_decimals = Column(Integer)
    published = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    procedure_id = Column(Integer, ForeignKey("procedures.id"))
    phenomenon_id = Column(Integer, ForeignKey("phenomena.id"))
    feature_id = Column(Integer, ForeignKey("features.id"))
    platform_id = Column(Integer, ForeignKey("platforms.id"))
    offering_id = Column(Integer, ForeignKey("offerings.id"))
    category_id = Column(Integer, ForeignKey("categories.id"))
    service_id = Column(Integer, ForeignKey("services.id"))

    # cached range pointers, maintained by the metadata merger
    first_value_at = Column(DateTime)
    first_observation_id = Column(Integer)
    first_quantity_value = Column(Float)
    last_value_at = Column(DateTime)
    last_observation_id = Column(Integer)
    last_quantity_value = Column(Float)

    procedure = relationship("Procedure")
    phenomenon = relationship("Phenomenon")
    feature = relationship("Feature")
    platform = relationship("Platform")
    offering = relationship("Offering")
    category = relationship("Category")
    service = relationship("Service")

    first_observation = relationship(
        "Observation",
        primaryjoin="foreign(Dataset.first_observation_id) == Observation.id",
        viewonly=True,
    )
    last_observation = relationship(
        "Observation",
        primaryjoin="foreign(Dataset.last_observation_id) == Observation.id",
        viewonly=True,
    )

    # flat ordered list, never traversed transitively
    reference_values = relationship(
        "Dataset",
        secondary=dataset_references,
        primaryjoin=id == dataset_references.c.dataset_id,
        secondaryjoin=id == dataset_references.c.reference_id,
        order_by=(dataset_references.c.position, dataset_references.c.reference_id),
    )

    @property
    def is_reference_series(self) -> bool:
        return self.procedure is not None and bool(self.procedure.reference)


class Observation(Base):
    __tablename__ = "observations"
    __table_args__ = (
        Index("ix_observations_dataset_end", "dataset_id", "sampling_time_end"),
        Index("ix_observations_dataset_start", "dataset_id", "sampling_time_start"),
    )

    id = Column(Integer, primary_key=True)
    dataset_id = Column(Integer, ForeignKey("datasets.id"), nullable=False)

    sampling_time_start = Column(DateTime, nullable=False)
    sampling_time_end = Column(DateTime, nullable=False)
    result_time = Column(DateTime)
    valid_time_start = Column(DateTime)
    valid_time_end = Column(DateTime)

    deleted = Column(Boolean, default=False, nullable=False)
    # complex observations are composed of child rows
    parent = Column(Boolean, default=False, nullable=False)

    longitude = Column(Float)
    latitude = Column(Float)

    value_quantity = Column(Float)
    value_count = Column(Integer)
    value_text = Column(Text)
    value_boolean = Column(Boolean)
    value_record = Column(JSON)

    dataset = relationship("Dataset")

    @property
    def has_geometry(self) -> bool:
        return self.longitude is not None and self.latitude is not None


# dataset value_type -> observations column carrying the payload
VALUE_COLUMN_BY_TYPE = {
    "quantity": "value_quantity",
    "count": "value_count",
    "text": "value_text",
    "boolean": "value_boolean",
    "record": "value_record",
}
