import time
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chamados.core.config import settings
from chamados.core.identity import CallerIdentity
from chamados.core.security import get_current_caller
from chamados.db import models
from chamados.db.session import get_db
from chamados.main import app

ANALYST = CallerIdentity(subject_id="sub-ana", email="ana@example.com", role="ANALYST")
DEVELOPER = CallerIdentity(subject_id="sub-dev", email="dev@example.com", role="DEVELOP")
VIEWER = CallerIdentity(subject_id="sub-view", email="view@example.com", role="DEFAULT")


def _make_sessionmaker():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _seed(db):
    client = models.Client(name="Cliente A")
    db.add(client)
    db.flush()
    project = models.Project(name="Projeto Financeiro", client_id=client.id)
    focal = models.Submitter(id="focal-1", name="Fernanda", email="fernanda@example.com")
    analyst = models.Submitter(id="analyst-1", name="Ana", email="ana@example.com", role=models.UserRole.ANALYST)
    robot = models.Robot(name="Robo Conciliacao")
    db.add_all([project, focal, analyst, robot])
    db.commit()
    return {"project_id": project.id, "robot_id": robot.id, "client_id": client.id}


class ApiTests(unittest.TestCase):
    def setUp(self):
        self.SessionLocal = _make_sessionmaker()
        with self.SessionLocal() as db:
            self.refs = _seed(db)
        self.caller = ANALYST

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_caller] = lambda: self.caller
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def _demand_body(self, **overrides):
        body = {
            "name": "Invoice-Bot",
            "type": "NOVO_PROJETO",
            "focal_point_id": "focal-1",
            "analyst_id": "analyst-1",
            "project_id": self.refs["project_id"],
            "robot_id": self.refs["robot_id"],
            "status": "BACKLOG",
        }
        body.update(overrides)
        return body

    def _tracking_body(self, demand_id, **overrides):
        body = {
            "demand_id": demand_id,
            "hours": 2.5,
            "nature": "DEV",
            "submitted_at": "2024-03-04",
            "submitter_id": "focal-1",
        }
        body.update(overrides)
        return body

    def test_health_is_public(self):
        app.dependency_overrides.pop(get_current_caller)
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"status": "ok"})

    def test_demand_lifecycle(self):
        res = self.client.post("/v1/api/demands", json=self._demand_body())
        self.assertEqual(res.status_code, 201)
        demand = res.json()
        self.assertEqual(demand["status"], "BACKLOG")
        self.assertIsNone(demand["ended_at"])

        res = self.client.post("/v1/api/demands", json=self._demand_body())
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["code"], "ALREADY_EXISTS")
        self.assertEqual(res.json()["path"], "/v1/api/demands")

        res = self.client.put(f"/v1/api/demands/{demand['id']}", json=self._demand_body(status="BLOCKED"))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(self.client.get("/v1/api/demands/status/BLOCKED").json()[0]["id"], demand["id"])

        res = self.client.delete(f"/v1/api/demands/{demand['id']}")
        self.assertEqual(res.status_code, 204)
        res = self.client.get(f"/v1/api/demands/{demand['id']}")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["code"], "NOT_FOUND")

    def test_invalid_reference_is_400(self):
        res = self.client.post("/v1/api/demands", json=self._demand_body(robot_id=999))
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["code"], "INVALID_REFERENCE")

    def test_validation_error_shape(self):
        res = self.client.post("/v1/api/demands", json=self._demand_body(name="  ", type="OUTRO"))
        self.assertEqual(res.status_code, 422)
        body = res.json()
        self.assertEqual(body["code"], "VALIDATION_ERROR")
        fields = {item["field"] for item in body["details"]}
        self.assertIn("body.name", fields)
        self.assertIn("body.type", fields)

    def test_tracking_blocked_gate_and_totals(self):
        demand = self.client.post("/v1/api/demands", json=self._demand_body(status="BLOCKED")).json()

        self.caller = DEVELOPER
        res = self.client.post("/v1/api/trackings", json=self._tracking_body(demand["id"]))
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["code"], "INVALID_STATE")

        self.caller = ANALYST
        self.client.put(f"/v1/api/demands/{demand['id']}", json=self._demand_body(status="DEVELOPING"))

        self.caller = DEVELOPER
        res = self.client.post("/v1/api/trackings", json=self._tracking_body(demand["id"]))
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.json()["demand"]["id"], demand["id"])
        self.client.post("/v1/api/trackings", json=self._tracking_body(demand["id"], hours=1.0, nature="DOC"))

        total = self.client.get(f"/v1/api/trackings/demand/{demand['id']}/total-hours").json()
        self.assertEqual(total["total_hours"], 3.5)
        doc = self.client.get(f"/v1/api/trackings/demand/{demand['id']}/total-hours/DOC").json()
        self.assertEqual(doc["total_hours"], 1.0)

        res = self.client.post("/v1/api/trackings", json=self._tracking_body(999))
        self.assertEqual(res.status_code, 400)

    def test_role_gate_is_403(self):
        self.caller = VIEWER
        res = self.client.post("/v1/api/demands", json=self._demand_body())
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["code"], "FORBIDDEN")

        res = self.client.get("/v1/api/demands")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), [])

    def test_missing_token_is_401(self):
        app.dependency_overrides.pop(get_current_caller)
        res = self.client.get("/v1/api/demands")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["code"], "UNAUTHORIZED")

    def test_me_with_claims_only_token(self):
        app.dependency_overrides.pop(get_current_caller)
        now = int(time.time())
        token = jwt.encode(
            {"sub": "sub-ana", "email": "ana@example.com", "name": "Ana", "exp": now + 600},
            "qualquer",
            algorithm="HS256",
        )
        with patch.object(settings, "AZURE_AD_VERIFY_SIGNATURE", False), patch.object(settings, "ADMIN_EMAIL", ""):
            res = self.client.get("/v1/api/me", headers={"Authorization": f"Bearer {token}"})

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["user"]["role"], "ANALYST")
        self.assertEqual(body["submitter"]["id"], "analyst-1")

    def test_reference_routes(self):
        self.caller = CallerIdentity(subject_id="sub-admin", email="admin@example.com", role="ADMIN")
        res = self.client.post("/v1/api/robots", json={"name": "Robo Fiscal", "execution_type": "ATTENDED"})
        self.assertEqual(res.status_code, 201)
        robot_id = res.json()["id"]

        res = self.client.patch(f"/v1/api/robots/{robot_id}", json={"status": "INACTIVE"})
        self.assertEqual(res.json()["status"], "INACTIVE")
        self.assertEqual(res.json()["execution_type"], "ATTENDED")

        res = self.client.delete(f"/v1/api/clients/{self.refs['client_id']}")
        self.assertEqual(res.status_code, 409)

        res = self.client.get("/v1/api/users/by-email", params={"email": "ANA@example.com"})
        self.assertEqual(res.json()["id"], "analyst-1")

        res = self.client.patch("/v1/api/users/focal-1/role", json={"role": "DEVELOP"})
        self.assertEqual(res.json()["role"], "DEVELOP")

    def test_call_lifecycle(self):
        res = self.client.post("/v1/api/calls/novo-projeto", json={"description": "Automatizar conciliacao", "people_count": 3})
        self.assertEqual(res.status_code, 201)
        created = res.json()
        self.assertTrue(created["protocol"].startswith("RPA-"))
        self.assertEqual(created["message"], "Solicitacao de novo projeto criada com sucesso!")

        res = self.client.get(f"/v1/api/calls/{created['id']}")
        self.assertEqual(res.json()["kind"], "NOVO_PROJETO")
        self.assertEqual(res.json()["people_count"], 3)
        self.assertEqual(len(self.client.get("/v1/api/calls/user/analyst-1").json()), 1)

        res = self.client.put(f"/v1/api/calls/{created['id']}", json={"kind": "MELHORIA"})
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["code"], "INVALID_STATE")

        self.caller = VIEWER
        res = self.client.delete(f"/v1/api/calls/{created['id']}")
        self.assertEqual(res.status_code, 403)

        self.caller = ANALYST
        self.assertEqual(self.client.delete(f"/v1/api/calls/{created['id']}").status_code, 204)
        self.assertEqual(self.client.get("/v1/api/calls").json(), [])

    def test_call_requires_description(self):
        res = self.client.post("/v1/api/calls/melhoria", json={"cell": "Financas"})
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.json()["code"], "VALIDATION_ERROR")


if __name__ == "__main__":
    unittest.main()
