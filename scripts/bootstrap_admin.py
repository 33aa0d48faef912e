import os

from chamados.db import models
from chamados.db.session import SessionLocal, engine


def bootstrap_admin(db, email: str, name: str | None = None) -> models.Submitter:
    email = email.strip().lower()
    admin = db.query(models.Submitter).filter(models.Submitter.email == email).first()
    if not admin:
        admin = models.Submitter(email=email, name=name or email.split("@", 1)[0].capitalize())
        db.add(admin)
    elif name:
        admin.name = name
    admin.role = models.UserRole.ADMIN
    admin.is_active = True
    db.commit()
    db.refresh(admin)
    return admin


def main() -> None:
    email = os.getenv("ADMIN_BOOTSTRAP_EMAIL") or os.getenv("ADMIN_EMAIL")
    if not email:
        raise SystemExit("ADMIN_BOOTSTRAP_EMAIL nao definido.")

    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = bootstrap_admin(db, email, os.getenv("ADMIN_BOOTSTRAP_NAME"))
        print(f"Admin ACTIVE: {admin.email}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
