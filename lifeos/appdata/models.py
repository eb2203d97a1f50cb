"""
Pydantic models for the per-user AppData document.

The document is stored and exchanged with camelCase keys; Python code uses
snake_case attributes. Money amounts stay strings because that is how the
web client writes them. Unknown keys are kept so older documents survive a
load/save cycle untouched.
"""

from __future__ import annotations

import re
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

GoalCategory = Literal["Health", "Career", "Personal"]
LoanStatus = Literal["Active", "Closed"]
JobStatus = Literal["Need to Apply", "Applied", "Interviewing", "Offer", "Rejected"]
JobType = Literal["Full-time", "Part-time", "Contract", "Internship"]
TravelStatus = Literal["Completed", "Planned"]
Priority = Literal["Low", "Medium", "High"]
TaskCategory = Literal["Work", "Personal", "Errands"]

CRITICAL_STEP_MAX_CHARS = 50


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class CamelModel(BaseModel):
    """Base for document records: camelCase aliases, extra keys preserved."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Step(CamelModel):
    id: str = Field(default_factory=lambda: new_id("step"))
    text: str
    completed: bool = False


def _legacy_goal_category(raw: str) -> str:
    label = re.sub(r"[^A-Za-z ]", "", raw).strip().lower()
    if "health" in label:
        return "Health"
    if any(word in label for word in ("career", "job", "skill")):
        return "Career"
    return "Personal"


class Goal(CamelModel):
    id: str = Field(default_factory=lambda: new_id("goal"))
    title: str
    description: str | None = None
    category: GoalCategory = "Personal"
    deadline: str | None = None
    steps: list[Step] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_shape(cls, data: Any) -> Any:
        # Early documents stored {category: "🚀 Career", goal, target, status}
        if isinstance(data, dict) and "title" not in data and "goal" in data:
            upgraded = {k: v for k, v in data.items() if k not in ("goal", "target", "status")}
            upgraded["title"] = data["goal"]
            upgraded["description"] = data.get("target")
            upgraded["category"] = _legacy_goal_category(str(data.get("category", "")))
            return upgraded
        if isinstance(data, dict) and data.get("category") not in (None, "Health", "Career", "Personal"):
            data = {**data, "category": _legacy_goal_category(str(data["category"]))}
        return data

    @property
    def is_completed(self) -> bool:
        return bool(self.steps) and all(step.completed for step in self.steps)


class PlanTask(CamelModel):
    text: str
    done: bool = False


class MonthlyPlan(CamelModel):
    month: str
    theme: str = ""
    tasks: list[PlanTask] = Field(default_factory=list)


class ChecklistItem(CamelModel):
    id: str = Field(default_factory=lambda: new_id("cs"))
    text: str
    done: bool = False


class Loan(CamelModel):
    id: str = Field(default_factory=lambda: new_id("loan"))
    name: str
    principal: str = "0"
    rate: str | None = None
    tenure: str | None = None
    emis_paid: str | None = None
    status: LoanStatus = "Active"
    last_auto_update: str | None = None


class JobApplication(CamelModel):
    date: str
    company: str
    role: str
    status: JobStatus = "Need to Apply"
    source: Literal["AI"] | None = None
    location: str | None = None
    job_type: JobType | None = None
    salary_range: str | None = None
    key_responsibilities: list[str] | None = None
    required_skills: list[str] | None = None
    apply_link: str | None = None
    additional_description: str | None = None
    reasoning: str | None = None

    def matches(self, company: str, role: str) -> bool:
        return (
            self.company.strip().lower() == company.strip().lower()
            and self.role.strip().lower() == role.strip().lower()
        )


class TravelGoal(CamelModel):
    id: str = Field(default_factory=lambda: new_id("travel"))
    destination: str
    status: TravelStatus = "Planned"
    travel_date: str | None = None
    notes: str | None = None
    image: str | None = None


class DailyTask(CamelModel):
    id: str = Field(default_factory=lambda: new_id("task"))
    title: str
    description: str | None = None
    due_date: str | None = None
    priority: Priority = "Medium"
    category: TaskCategory = "Personal"
    completed: bool = False


class IncomeSource(CamelModel):
    id: str = Field(default_factory=lambda: new_id("income"))
    name: str
    amount: str = "0"


class SIP(CamelModel):
    id: str = Field(default_factory=lambda: new_id("sip"))
    amount: str = "0"
    mutual_fund: str
    platform: str | None = None


class ContactInfo(CamelModel):
    name: str = ""
    location: str = ""
    phone: str = ""
    email: str = ""
    linkedin: str = ""
    github: str = ""


class ResumeSummary(CamelModel):
    title: str = ""
    text: str = ""


class WorkExperience(CamelModel):
    id: str = Field(default_factory=lambda: new_id("work"))
    company: str = ""
    location: str = ""
    role: str = ""
    start_date: str | None = None
    end_date: str | None = None
    is_current: bool = False
    description_points: list[str] = Field(default_factory=list)


class Project(CamelModel):
    id: str = Field(default_factory=lambda: new_id("project"))
    name: str = ""
    start_date: str | None = None
    end_date: str | None = None
    is_current: bool = False
    description: str = ""


class Education(CamelModel):
    id: str = Field(default_factory=lambda: new_id("edu"))
    institution: str = ""
    degree: str = ""
    location: str = ""
    gpa: str = ""
    end_date: str | None = None


class ResumeData(CamelModel):
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    summary: ResumeSummary = Field(default_factory=ResumeSummary)
    skills: dict[str, str] = Field(default_factory=dict)
    work_experience: list[WorkExperience] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)


class RelocationQuestionnaire(CamelModel):
    current_profession: str
    family_size: int = Field(gt=0)
    language_skills: str = ""
    career_goals: str = ""
    lifestyle: Literal["City", "Suburban", "Rural", "Flexible"] = "Flexible"
    climate_preference: Literal["Warm", "Cold", "Temperate", "No Preference"] = "No Preference"
    work_life_balance: Literal["Priority", "Important", "Balanced", "Flexible"] = "Balanced"
    reason_for_relocation: Literal["Jobs", "Study"] = "Jobs"


class CountryRecommendation(CamelModel):
    country: str
    suitability_score: float = Field(ge=1, le=100)
    summary: str
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)


class RoadmapVisa(CamelModel):
    title: str
    steps: list[str] = Field(default_factory=list)


class RoadmapHousing(CamelModel):
    title: str
    options: list[str] = Field(default_factory=list)


class RoadmapJobSearch(CamelModel):
    title: str
    strategies: list[str] = Field(default_factory=list)


class RoadmapCulture(CamelModel):
    title: str
    tips: list[str] = Field(default_factory=list)


class RoadmapResources(CamelModel):
    title: str
    resources: list[str] = Field(default_factory=list)


class RelocationRoadmap(CamelModel):
    visa: RoadmapVisa
    housing: RoadmapHousing
    job_search: RoadmapJobSearch
    cultural_adaptation: RoadmapCulture
    local_resources: RoadmapResources


class LivingAdvisorData(CamelModel):
    questionnaire: RelocationQuestionnaire | None = None
    recommendations: list[CountryRecommendation] = Field(default_factory=list)
    roadmaps: dict[str, RelocationRoadmap] = Field(default_factory=dict)


class CriticalStep(CamelModel):
    text: str
    priority: Literal["High", "Critical", "Urgent"]
    category: Literal["Goals", "Career", "Finance", "Personal"]
    reasoning: str
    timeframe: Literal["Today", "This Week", "This Month"]

    @field_validator("text")
    @classmethod
    def _clip_text(cls, value: str) -> str:
        # Rendered as a dashboard chip; longer model output is cut, not rejected
        value = value.strip()
        return value if len(value) <= CRITICAL_STEP_MAX_CHARS else value[: CRITICAL_STEP_MAX_CHARS - 1].rstrip() + "…"


class CriticalStepsSnapshot(CamelModel):
    steps: list[CriticalStep] = Field(default_factory=list)
    data_hash: str
    generated_at: str | None = None


class AppData(CamelModel):
    """Everything one user has entered, stored as a single document."""

    goals: list[Goal] = Field(default_factory=list)
    monthly_plan: list[MonthlyPlan] = Field(default_factory=list)
    car_sale_checklist: list[ChecklistItem] = Field(default_factory=list)
    car_sale_price: str = ""
    car_loan_payoff: str = ""
    loans: list[Loan] = Field(default_factory=list)
    job_applications: list[JobApplication] = Field(default_factory=list)
    emergency_fund: str = "0"
    emergency_fund_target: str = ""
    sips: list[SIP] = Field(default_factory=list)
    travel_goals: list[TravelGoal] = Field(default_factory=list)
    daily_tasks: list[DailyTask] = Field(default_factory=list)
    income_sources: list[IncomeSource] = Field(default_factory=list)
    resume: ResumeData | None = None
    living_advisor: LivingAdvisorData | None = None
    last_job_suggestion_check: str | None = None
    critical_steps: CriticalStepsSnapshot | None = None
