"""
Input and output contracts of the AI flows.

Inputs are what the API accepts in a request body; outputs are what the
model must return (validated before anything reaches the caller). Both use
camelCase on the wire like the AppData document.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import ConfigDict, Field, field_validator

from lifeos.appdata.models import (
    CamelModel,
    ContactInfo,
    CountryRecommendation,
    CriticalStep,
    JobApplication,
    RelocationQuestionnaire,
    RelocationRoadmap,
    ResumeData,
    ResumeSummary,
)

ModuleName = Literal[
    "DashboardOverview", "MonthlyPlan", "CarSale", "Finance", "JobSearch", "Travel", "DailyTodo"
]

JOB_RESUME_SKILL_KEYS = ("Technical Skills", "Soft Skills", "Industry Skills", "Tools & Technologies")


class FlowInput(CamelModel):
    """Request bodies: unknown keys are dropped instead of stored."""

    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class GoalTipsInput(FlowInput):
    goal: str = Field(min_length=1)
    obstacle: str = Field(min_length=1)


class ContextInput(FlowInput):
    """Flows that read the whole dashboard document."""

    context: dict[str, Any]


class GoalStepSuggestionsInput(FlowInput):
    goal: dict[str, Any]
    context: dict[str, Any]


class ModuleSuggestionsInput(FlowInput):
    module: ModuleName
    context: Any = None
    user_query: str | None = None
    focused_month: str | None = None


class JobSuggestionsInput(FlowInput):
    resume: ResumeData | None = None


class ApplicationEmailInput(FlowInput):
    resume: ResumeData
    job_application: JobApplication


class JobSpecificResumeInput(FlowInput):
    base_resume: ResumeData
    job_application: JobApplication


class ParseResumeInput(FlowInput):
    resume_text: str = Field(min_length=1)


class TravelSuggestionInput(FlowInput):
    exclude: str | None = None
    user_data: dict[str, Any] | None = None


class TravelItineraryInput(FlowInput):
    destination: str = Field(min_length=1)
    duration: int = Field(ge=1, le=30)


class TravelImageInput(FlowInput):
    destination: str = Field(min_length=1)


class RelocationAdviceInput(FlowInput):
    questionnaire: RelocationQuestionnaire
    resume: ResumeData | None = None


class RelocationRoadmapInput(FlowInput):
    country: str = Field(min_length=1)
    profile: RelocationAdviceInput


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class GoalTipsOutput(CamelModel):
    tips: list[str]


class SuggestedGoal(CamelModel):
    title: str
    description: str
    category: Literal["Health", "Career", "Personal"]
    steps: list[str] = Field(default_factory=list)


class GoalSuggestionsOutput(CamelModel):
    suggestions: list[SuggestedGoal]


class SuggestedStep(CamelModel):
    text: str
    priority: Literal["Low", "Medium", "High"]
    reasoning: str


class GoalStepSuggestionsOutput(CamelModel):
    suggestions: list[SuggestedStep] = Field(default_factory=list)


class CriticalStepsOutput(CamelModel):
    steps: list[CriticalStep] = Field(default_factory=list)


class SuggestedTask(CamelModel):
    title: str
    description: str | None = None
    category: Literal["Work", "Personal", "Errands"]
    priority: Literal["Low", "Medium", "High"]


class TaskSuggestionsOutput(CamelModel):
    suggestions: list[SuggestedTask]


class SuggestedMonthlyPlan(CamelModel):
    month: str
    theme: str
    tasks: list[str] = Field(default_factory=list)


class MonthlyPlanSuggestionsOutput(CamelModel):
    suggestions: list[SuggestedMonthlyPlan]


class ModuleSuggestionsOutput(CamelModel):
    suggestions: list[str]


class SuggestedJob(CamelModel):
    company: str
    role: str
    reasoning: str


class JobSuggestionsOutput(CamelModel):
    suggestions: list[SuggestedJob]


class ApplicationEmailOutput(CamelModel):
    subject: str
    body: str


class JobSpecificResumeOutput(ResumeData):
    """A ResumeData whose skills are regrouped under the four fixed headings."""

    @field_validator("skills")
    @classmethod
    def _four_skill_groups(cls, value: dict[str, str]) -> dict[str, str]:
        return {key: value.get(key, "") for key in JOB_RESUME_SKILL_KEYS}


class ParsedWorkExperience(CamelModel):
    company: str = ""
    location: str = ""
    role: str = ""
    dates: str | None = None
    description_points: list[str] = Field(default_factory=list)


class ParsedProject(CamelModel):
    name: str = ""
    dates: str | None = None
    description: str = ""


class ParsedEducation(CamelModel):
    institution: str = ""
    degree: str = ""
    location: str = ""
    gpa: str = ""
    date: str | None = None


class ParsedResume(CamelModel):
    """Resume as the parser returns it: free-text date ranges, not start/end."""

    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    summary: ResumeSummary = Field(default_factory=ResumeSummary)
    skills: dict[str, str] = Field(default_factory=dict)
    work_experience: list[ParsedWorkExperience] = Field(default_factory=list)
    projects: list[ParsedProject] = Field(default_factory=list)
    education: list[ParsedEducation] = Field(default_factory=list)

    @field_validator("skills", mode="before")
    @classmethod
    def _join_skill_lists(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: ", ".join(v) if isinstance(v, list) else v for k, v in value.items()}
        return value


class TravelSuggestionOutput(CamelModel):
    destination: str
    reasoning: str


class ItineraryActivity(CamelModel):
    name: str
    description: str


class ItineraryDay(CamelModel):
    title: str
    theme: str
    activities: list[ItineraryActivity] = Field(default_factory=list)


class TravelItineraryOutput(CamelModel):
    general_tips: list[str] = Field(default_factory=list)
    days: list[ItineraryDay]

    @field_validator("general_tips", mode="before")
    @classmethod
    def _tips_as_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [line.strip("-• ").strip() for line in value.splitlines() if line.strip()]
        return value


class TravelImageOutput(CamelModel):
    image_data_uri: str


class RelocationAdviceOutput(CamelModel):
    recommendations: list[CountryRecommendation]


RelocationRoadmapOutput = RelocationRoadmap
