"""Shared fakes for pipeline and route tests."""

import dataclasses
import json

import pytest

from config_loader import EstimatorSettings
from estimator.pipeline import EstimateService
from services.llm_client import extract_json_object
from stores.job_store import StoreError


class FakeLLM:
    """Returns canned replies; a reply that is an exception is raised instead."""

    def __init__(self, replies=None, image_reply=None):
        self.replies = list(replies or [])
        self.image_reply = image_reply
        self.prompts = []

    def complete_json(self, system, user, max_tokens=2500, temperature=0.2):
        self.prompts.append(user)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return extract_json_object(text), text

    def analyze_image_json(self, prompt, image_url, max_tokens=1000, temperature=0.2):
        if isinstance(self.image_reply, BaseException):
            raise self.image_reply
        text = self.image_reply if isinstance(self.image_reply, str) else json.dumps(self.image_reply)
        return extract_json_object(text), text


class FakeStore:
    def __init__(self, fail_on=None):
        self.customers = []
        self.jobs = []
        self.fail_on = fail_on

    def find_or_create_customer(self, name, phone=None, email=None):
        if self.fail_on == "customer":
            raise StoreError("customers insert rejected")
        for c in self.customers:
            if email and c["email"] == email:
                return c
        for c in self.customers:
            if phone and c["phone"] == phone:
                return c
        row = {"id": len(self.customers) + 1, "name": name, "phone": phone, "email": email}
        self.customers.append(row)
        return row

    def insert_job(self, payload):
        if self.fail_on == "job":
            raise StoreError("jobs insert rejected")
        row = dict(payload, id=len(self.jobs) + 1)
        self.jobs.append(row)
        return row

    def list_recent_jobs(self, limit=50):
        if self.fail_on == "list":
            raise StoreError("jobs query failed")
        return list(reversed(self.jobs))[:limit]


@pytest.fixture
def settings():
    return EstimatorSettings(default_labor_rate=65.0, shop_supplies_percent=7.0, tax_rate_percent=28.0)


@pytest.fixture
def make_service(settings):
    def _make(replies=None, store=None, image_reply=None, **overrides):
        s = settings
        if overrides:
            s = dataclasses.replace(settings, **overrides)
        return EstimateService(s, FakeLLM(replies, image_reply=image_reply), store or FakeStore())

    return _make
