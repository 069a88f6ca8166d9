"""
promoengine/promotions/__init__.py
----------------------------------
Promotions blueprint: HTTP tester surface for the evaluation engine.
URL prefix: /promotions
"""
from flask import Blueprint

promotions = Blueprint('promotions', __name__)

from promoengine.promotions import routes  # noqa: E402, F401
