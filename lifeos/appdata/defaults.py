"""Starter document for new users and the defaults merged into stored ones."""

from __future__ import annotations

import copy
from typing import Any

from lifeos.config import DEFAULT_EMERGENCY_FUND_TARGET

EPOCH_ISO = "1970-01-01T00:00:00+00:00"

DEFAULT_INCOME_SOURCES: list[dict[str, Any]] = [
    {"id": "income-1", "name": "Primary Job", "amount": "50000"},
]

_INITIAL_DATA: dict[str, Any] = {
    "goals": [
        {
            "id": "goal-1",
            "title": "Switch to a higher-paying QA role",
            "description": "Target 7-10 LPA at a product-based company",
            "category": "Career",
            "deadline": "2025-12-31",
            "steps": [
                {"id": "goal-1-step-1", "text": "Refine resume for automation roles", "completed": False},
                {"id": "goal-1-step-2", "text": "Apply to 15 targeted openings", "completed": False},
                {"id": "goal-1-step-3", "text": "Complete 3 technical interviews", "completed": False},
            ],
        },
        {
            "id": "goal-2",
            "title": "Grow emergency fund to 40K",
            "description": "Three months of essentials in a liquid account",
            "category": "Personal",
            "deadline": "2025-12-31",
            "steps": [
                {"id": "goal-2-step-1", "text": "Automate a monthly transfer", "completed": False},
                {"id": "goal-2-step-2", "text": "Start a 1-2K monthly SIP", "completed": False},
            ],
        },
    ],
    "monthlyPlan": [
        {
            "month": "July 2025",
            "theme": "Reset & Rebuild: audit finances, plan upskilling, sell the car",
            "tasks": [
                {"text": "Finalize decision on car sale", "done": True},
                {"text": "Consolidate short-term loans or close the smallest one", "done": True},
                {"text": "Create a budget envelope (EMIs, groceries, savings, job-hunting)", "done": True},
                {"text": "Refine resume and prepare 3 cover letter templates", "done": False},
            ],
        },
        {
            "month": "August 2025",
            "theme": "Learning + Preparation: build confidence for new roles",
            "tasks": [
                {"text": "Finish an API testing or Appium course", "done": False},
                {"text": "Publish a test automation framework on GitHub", "done": False},
                {"text": "Apply to 12-15 carefully selected openings", "done": False},
            ],
        },
        {
            "month": "September 2025",
            "theme": "Interviews & Certifications",
            "tasks": [
                {"text": "Start ISTQB preparation", "done": False},
                {"text": "Practice mock interviews", "done": False},
            ],
        },
        {
            "month": "October 2025",
            "theme": "Applications & Networking Push",
            "tasks": [
                {"text": "Apply to 20+ product/MNC openings", "done": False},
                {"text": "Start a 1,000-2,000 monthly SIP", "done": False},
            ],
        },
        {
            "month": "November 2025",
            "theme": "Offer-Oriented Strategy",
            "tasks": [
                {"text": "Target 3-5 technical interviews", "done": False},
                {"text": "Prepare offer comparison and negotiation script", "done": False},
            ],
        },
        {
            "month": "December 2025",
            "theme": "Reflect, Realign, Roll Up",
            "tasks": [
                {"text": "Accept offer and join new role", "done": False},
                {"text": "Prepay a loan with the car sale proceeds", "done": False},
            ],
        },
    ],
    "carSaleChecklist": [
        {"id": "cs-1", "text": "Get car valuation from 3 sources", "done": False},
        {"id": "cs-2", "text": "Collect RC, insurance and service records", "done": False},
        {"id": "cs-3", "text": "Get loan foreclosure statement", "done": False},
        {"id": "cs-4", "text": "Clean and detail the car", "done": False},
        {"id": "cs-5", "text": "List on resale platforms", "done": False},
        {"id": "cs-6", "text": "Negotiate and finalize the buyer", "done": False},
        {"id": "cs-7", "text": "Close the loan and collect NOC", "done": False},
        {"id": "cs-8", "text": "Transfer ownership (Form 29/30)", "done": False},
    ],
    "carSalePrice": "550000",
    "carLoanPayoff": "402450",
    "loans": [
        {
            "id": "loan-1",
            "name": "Toyota Financial (Car Loan)",
            "principal": "394558",
            "status": "Active",
        },
        {
            "id": "loan-2",
            "name": "L&T Finance (Personal Loan)",
            "principal": "0",
            "status": "Active",
        },
    ],
    "jobApplications": [],
    "emergencyFund": "0",
    "emergencyFundTarget": DEFAULT_EMERGENCY_FUND_TARGET,
    "sips": [],
    "travelGoals": [],
    "dailyTasks": [],
    "incomeSources": DEFAULT_INCOME_SOURCES,
    "lastJobSuggestionCheck": EPOCH_ISO,
}

# List-valued keys that must always be present after a load
LIST_FIELDS = (
    "goals",
    "monthlyPlan",
    "carSaleChecklist",
    "loans",
    "jobApplications",
    "sips",
    "travelGoals",
    "dailyTasks",
    "incomeSources",
)


def initial_data() -> dict[str, Any]:
    """Fresh copy of the starter document (camelCase keys)."""
    return copy.deepcopy(_INITIAL_DATA)


def merge_with_defaults(stored: dict[str, Any]) -> dict[str, Any]:
    """
    Overlay a stored document on the starter one and fill required defaults.

    Stored values win. Keys an older document never had take the starter
    value; null list fields become empty lists. An empty emergency fund
    target becomes the default, an empty income list gets the single
    "Primary Job" source, and a missing job-check timestamp becomes the
    epoch so the first check runs.
    """
    merged = initial_data()
    merged.update(stored)

    for field in LIST_FIELDS:
        if merged.get(field) is None:
            merged[field] = []

    if not merged.get("emergencyFundTarget"):
        merged["emergencyFundTarget"] = DEFAULT_EMERGENCY_FUND_TARGET
    if not merged.get("incomeSources"):
        merged["incomeSources"] = copy.deepcopy(DEFAULT_INCOME_SOURCES)
    if not merged.get("lastJobSuggestionCheck"):
        merged["lastJobSuggestionCheck"] = EPOCH_ISO

    return merged
