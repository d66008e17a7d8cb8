# blueprints/auth/routes.py
from __future__ import annotations
import logging
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, abort, current_app
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import CSRFError

from extensions import db, login_manager
from models import User, Role

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)
api_bp = Blueprint("auth_api", __name__)

# ---- безопасные значения по умолчанию
DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 минут
_login_attempts: dict[str, list[float]] = {}  # ключ: ip|email -> [timestamps]

@login_manager.user_loader
def load_user(uid: str) -> Optional[User]:
    try:
        return db.session.get(User, int(uid))
    except (TypeError, ValueError):
        return None

# ---------- rate limit ----------
def _rl_key(email: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{ip}|{(email or '').lower()}"

def _rl_check_and_hit(email: str) -> bool:
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    key = _rl_key(email)
    cutoff = now - win
    # purge старых: ключи без попыток в окне удаляем целиком
    for stale in [k for k, hits in _login_attempts.items() if not hits or hits[-1] < cutoff]:
        del _login_attempts[stale]
    bucket = _login_attempts.setdefault(key, [])
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    if len(bucket) >= mx:
        return False
    bucket.append(now)
    return True

def reset_rate_limits() -> None:
    _login_attempts.clear()

# ---------- декораторы ролей ----------
def admin_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != Role.ADMIN.value:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def member_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        # админ тоже может бронировать как обычный посетитель
        if getattr(current_user, "role", None) not in (Role.MEMBER.value, Role.ADMIN.value):
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

# ---------- обработчики 401/403/CSRF ----------
@login_manager.unauthorized_handler
def _unauth():
    return jsonify({"error": "unauthorized"}), 401

@bp.app_errorhandler(403)
def _forbidden(e):
    return jsonify({"error": "forbidden"}), 403

@bp.app_errorhandler(404)
def _not_found(e):
    return jsonify({"error": "not_found"}), 404

@bp.app_errorhandler(CSRFError)
def _csrf_failed(e):
    return jsonify({"error": "csrf_failed", "detail": e.description}), 400

def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "full_name": user.full_name,
        "role": user.role,
    }

# ---------- API ----------
@api_bp.post("/auth/login")
def api_login():
    payload = request.get_json(silent=True) or request.form or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return jsonify({"error": "missing_credentials"}), 400

    # rate limit
    if not _rl_check_and_hit(email):
        logger.warning("login rate limited", extra={"event": "login_rate_limited"})
        return jsonify({"error": "too_many_attempts"}), 429

    user: Optional[User] = User.query.filter_by(email=email).first()
    if not user or not user.password_hash or not user.check_password(password):
        return jsonify({"error": "invalid_credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "inactive"}), 403

    login_user(user, remember=True)
    logger.info("user logged in", extra={"event": "login", "user_id": user.id})
    return jsonify({"ok": True, "user": user_to_dict(user)})

@api_bp.post("/auth/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})

@api_bp.get("/auth/me")
@login_required
def api_me():
    return jsonify({"ok": True, "user": user_to_dict(current_user)})
