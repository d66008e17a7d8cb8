from flask import Blueprint

bp = Blueprint("booking", __name__)
api_bp = Blueprint("booking_api", __name__)

from . import routes  # noqa: E402,F401
