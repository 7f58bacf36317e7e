from sqlalchemy import select

from piecework.config import settings
from piecework.db import SessionLocal, engine
from piecework.models import Base, Principal, PrincipalRole
from piecework.security.passwords import hash_password


def seed() -> None:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        admin = db.execute(select(Principal).where(Principal.username == settings.admin_username)).scalar_one_or_none()
        if not admin:
            db.add(
                Principal(
                    username=settings.admin_username,
                    password_hash=hash_password(settings.admin_password),
                    role=PrincipalRole.ADMIN,
                    active=True,
                )
            )
        elif not admin.active:
            admin.active = True

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
