"""
Idempotent seed-скрипт.
Запуск:
  python seed.py --reset      # дропнуть и пересоздать таблицы + пользователи + слоты
  python seed.py --days 14    # слоты на сегодня и ещё 13 дней вперёд
  python seed.py              # мягкое наполнение недостающих данных (idempotent)
"""
from __future__ import annotations
import argparse
import logging
from datetime import timedelta

from extensions import db
from models import Role, User

logger = logging.getLogger("gym.seed")

DEFAULT_DAYS = 7

def ensure_users(users: list[dict]) -> int:
    """Создаёт недостающих пользователей (по email). Возвращает число созданных."""
    created = 0
    for u in users:
        email = u["email"].strip().lower()
        if User.query.filter_by(email=email).first():
            continue
        user = User(
            email=email,
            username=u.get("username") or email.split("@")[0],
            full_name=u.get("full_name"),
            role=Role(u.get("role", Role.MEMBER.value)).value,
            is_active_flag=True,
        )
        user.set_password(u["password"])
        db.session.add(user)
        created += 1
    if created:
        db.session.commit()
        logger.info("users seeded", extra={"event": "users_seeded", "count": created})
    return created

def ensure_days(days: int) -> int:
    """Слоты на сегодня и days-1 следующих дней. Возвращает число дней."""
    from blueprints.booking.ledger import ensure_day_slots, gym_today

    today = gym_today()
    for offset in range(days):
        ensure_day_slots(today + timedelta(days=offset))
    return days

def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed gym booking database")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables")
    parser.add_argument("--days", type=int, default=DEFAULT_DAYS, help="days of slots to initialize")
    parser.add_argument("--config", default=None, help="config name (dev, prod, test)")
    args = parser.parse_args(argv)
    if args.days < 0:
        parser.error("--days must be >= 0")

    from app import create_app

    app = create_app(args.config)
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
        else:
            db.create_all()
        users = ensure_users(app.config.get("DEFAULT_USERS") or [])
        days = ensure_days(args.days)
    print(f"seed done: users created={users}, days ensured={days}")

if __name__ == "__main__":
    main()
