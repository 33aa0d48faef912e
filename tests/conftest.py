from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from chamados.core.identity import CallerIdentity
from chamados.db import models
from chamados.db import session as _session  # noqa: F401  registers the SQLite foreign-key listener


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield db
    db.close()
    engine.dispose()


@pytest.fixture()
def admin():
    return CallerIdentity(subject_id="sub-admin", email="admin@example.com", display_name="Admin", role="ADMIN")


@pytest.fixture()
def analyst():
    return CallerIdentity(subject_id="sub-ana", email="ana@example.com", display_name="Ana", role="ANALYST")


@pytest.fixture()
def developer():
    return CallerIdentity(subject_id="sub-dev", email="dev@example.com", display_name="Dev", role="DEVELOP")


@pytest.fixture()
def viewer():
    return CallerIdentity(subject_id="sub-view", email="view@example.com", display_name="View", role="DEFAULT")


@pytest.fixture()
def seed(db_session):
    """Reference data every demand needs: a project, two submitters and a robot."""
    client = models.Client(name="Cliente A")
    db_session.add(client)
    db_session.flush()
    project = models.Project(name="Projeto Financeiro", area="Financas", client_id=client.id)
    other_client = models.Client(name="Cliente B")
    db_session.add_all([project, other_client])
    db_session.flush()
    other_project = models.Project(name="Projeto Fiscal", client_id=other_client.id)
    focal = models.Submitter(id="focal-1", name="Fernanda", email="fernanda@example.com", role=models.UserRole.DEFAULT)
    analyst = models.Submitter(id="analyst-1", name="Ana", email="ana@example.com", role=models.UserRole.ANALYST)
    dev = models.Submitter(id="dev-1", name="Dev", email="dev@example.com", role=models.UserRole.DEVELOP)
    robot = models.Robot(name="Robo Conciliacao", cell="Financas", technology="UiPath")
    db_session.add_all([other_project, focal, analyst, dev, robot])
    db_session.commit()
    return SimpleNamespace(
        client=client,
        other_client=other_client,
        project=project,
        other_project=other_project,
        focal=focal,
        analyst=analyst,
        dev=dev,
        robot=robot,
    )
