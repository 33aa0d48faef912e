import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class ServiceType(str, enum.Enum):
    MELHORIA = "MELHORIA"
    SUSTENTACAO = "SUSTENTACAO"
    NOVO_PROJETO = "NOVO_PROJETO"


class DemandStatus(str, enum.Enum):
    BACKLOG = "BACKLOG"
    ASSESSMENT = "ASSESSMENT"
    COST_APPROVAL = "COST_APPROVAL"
    DEVELOPING = "DEVELOPING"
    DEPLOYING = "DEPLOYING"
    CLIENT_APPROVAL = "CLIENT_APPROVAL"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"
    CANCELED = "CANCELED"


class Nature(str, enum.Enum):
    DOC = "DOC"
    DEV = "DEV"


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    ANALYST = "ANALYST"
    DEVELOP = "DEVELOP"
    DEFAULT = "DEFAULT"


class ExecutionType(str, enum.Enum):
    ATTENDED = "ATTENDED"
    UNATTENDED = "UNATTENDED"


class RobotStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


def _enum(enum_cls):
    return Enum(enum_cls, native_enum=False, validate_strings=True, length=32)


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("name", name="uq_client_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    projects = relationship("Project", back_populates="client")


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (UniqueConstraint("name", name="uq_project_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    area = Column(String, nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)

    client = relationship("Client", back_populates="projects")


class Robot(Base):
    __tablename__ = "robots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    cell = Column(String, nullable=True)
    technology = Column(String, nullable=True)
    execution_type = Column(_enum(ExecutionType), nullable=True)
    client = Column(String, nullable=True)
    status = Column(_enum(RobotStatus), nullable=False, default=RobotStatus.ACTIVE)


class Submitter(Base):
    __tablename__ = "submitters"
    __table_args__ = (UniqueConstraint("email", name="uq_submitter_email"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    department = Column(String, nullable=True)
    company = Column(String, nullable=True)
    role = Column(_enum(UserRole), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_activity = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=True)


class Demand(Base):
    __tablename__ = "demands"
    __table_args__ = (UniqueConstraint("name", name="uq_demand_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    doc_hours = Column(Float, nullable=True)
    dev_hours = Column(Float, nullable=True)
    type = Column(_enum(ServiceType), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(_enum(DemandStatus), nullable=False, default=DemandStatus.BACKLOG)
    opened_at = Column(Date, nullable=True)
    start_at = Column(Date, nullable=True)
    ends_at = Column(Date, nullable=True)
    ended_at = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    roi = Column(String, nullable=True)
    # Opaque ids into the data-warehouse client/service dimensions.
    client = Column(Integer, nullable=True)
    service = Column(Integer, nullable=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    focal_point_id = Column(String, ForeignKey("submitters.id"), nullable=False)
    analyst_id = Column(String, ForeignKey("submitters.id"), nullable=False)
    robot_id = Column(Integer, ForeignKey("robots.id"), nullable=False)

    project = relationship("Project")
    focal_point = relationship("Submitter", foreign_keys=[focal_point_id])
    analyst = relationship("Submitter", foreign_keys=[analyst_id])
    robot = relationship("Robot")
    trackings = relationship("Tracking", back_populates="demand")


class Tracking(Base):
    __tablename__ = "trackings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    demand_id = Column(Integer, ForeignKey("demands.id"), nullable=False)
    hours = Column(Float, nullable=False)
    nature = Column(_enum(Nature), nullable=False)
    description = Column(Text, nullable=True)
    submitted_at = Column(Date, nullable=False)
    submitter_id = Column(String, ForeignKey("submitters.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    demand = relationship("Demand", back_populates="trackings")
    submitter = relationship("Submitter")


class ServiceRequest(Base):
    """A service request ("chamado") opened by a submitter.

    One table holds the three kinds; ``kind`` selects the mapped subclass.
    Columns shared by MELHORIA and SUSTENTACAO live on the base class.
    """

    __tablename__ = "service_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(_enum(ServiceType), nullable=False)
    description = Column(Text, nullable=False)
    submitter_id = Column(String, ForeignKey("submitters.id"), nullable=False)
    cell = Column(String, nullable=True)
    robot = Column(String, nullable=True)
    automation_technology = Column(String, nullable=True)
    company = Column(String, nullable=True)

    client_code = Column(String, nullable=True)
    client_name = Column(String, nullable=True)
    service_code = Column(String, nullable=True)
    service_name = Column(String, nullable=True)
    has_documentation = Column(Boolean, nullable=True)
    automation_user = Column(String, nullable=True)
    automation_server = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    submitter = relationship("Submitter")

    __mapper_args__ = {"polymorphic_on": kind}


class MelhoriaRequest(ServiceRequest):
    already_supported = Column(Boolean, nullable=True)

    __mapper_args__ = {"polymorphic_identity": ServiceType.MELHORIA}


class SustentacaoRequest(ServiceRequest):
    __mapper_args__ = {"polymorphic_identity": ServiceType.SUSTENTACAO}


class NovoProjetoRequest(ServiceRequest):
    roi = Column(Text, nullable=True)
    client = Column(String, nullable=True)
    service = Column(String, nullable=True)
    business_area = Column(String, nullable=True)
    process_name = Column(String, nullable=True)
    execution_frequency = Column(String, nullable=True)
    seasonality = Column(String, nullable=True)
    volume = Column(Text, nullable=True)
    case_duration = Column(String, nullable=True)
    people_count = Column(Integer, nullable=True)
    input_data_source = Column(String, nullable=True)
    uses_mfa = Column(Text, nullable=True)
    has_captcha = Column(Text, nullable=True)
    has_digital_certificate = Column(Text, nullable=True)
    api_available = Column(Text, nullable=True)
    robotic_user_possible = Column(Text, nullable=True)
    login_access_limits = Column(Text, nullable=True)
    application_access = Column(Text, nullable=True)
    rdp_positive = Column(Text, nullable=True)
    needs_vpn = Column(Text, nullable=True)
    human_analysis_step = Column(Text, nullable=True)
    technology_restrictions = Column(Text, nullable=True)
    rules_defined = Column(String, nullable=True)
    repetitive_process = Column(String, nullable=True)
    structured_data = Column(String, nullable=True)

    __mapper_args__ = {"polymorphic_identity": ServiceType.NOVO_PROJETO}
