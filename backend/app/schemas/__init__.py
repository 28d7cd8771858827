"""Pydantic schemas for the ROAM platform API."""

from app.schemas.base import *
from app.schemas.onboarding import *
from app.schemas.business import *
from app.schemas.booking import *
from app.schemas.moderation import *
from app.schemas.staff import *
