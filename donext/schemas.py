"""Request body schemas.

JSON keys are camelCase on the wire and snake_case on the models.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone
from typing import Annotated, ClassVar, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    ValidationError as PydanticValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from donext.errors import ValidationError

Priority = Literal["High", "Medium", "Low"]
GoalStatus = Literal["Active", "Completed", "Archived"]
ProjectTaskStatus = Literal["Todo", "InProgress", "Review", "Completed"]
PartnershipStatus = Literal["Active", "Paused", "Ended"]
CheckInFrequency = Literal["Daily", "Weekly", "Bi-weekly"]
CalendarProvider = Literal["google", "outlook", "apple"]
EventType = Literal["Task", "Habit", "Meeting", "Event"]
NotificationType = Literal["info", "success", "warning", "error"]


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_to_naive_utc)]


def optional_text(max_length: int, min_length: int = 0):
    return Field(default=None, min_length=min_length, max_length=max_length)


class Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def parse(schema: type[Schema], data) -> Schema:
    """Validate ``data`` against ``schema`` or raise a 400 with field details."""
    try:
        return schema.model_validate(data if data is not None else {})
    except PydanticValidationError as exc:
        details = [
            {"field": ".".join(str(part) for part in err["loc"]) or "body", "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError("Invalid input", details=details) from exc


class PartialUpdate(Schema):
    """Partial update body; fields in ``required`` may be omitted but not nulled."""

    required: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_nulls(self):
        nulled = [
            type(self).model_fields[name].alias or name
            for name in self.required
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if nulled:
            raise ValueError(f"{', '.join(nulled)} cannot be null")
        return self


# --- auth ---------------------------------------------------------------

class SignupSchema(Schema):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)


class LoginSchema(Schema):
    email: EmailStr
    password: str = Field(min_length=6)


class ForgotPasswordSchema(Schema):
    email: EmailStr


class ResetPasswordSchema(Schema):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)


class UserSettingsSchema(Schema):
    name: Optional[str] = optional_text(100, 1)
    email: Optional[EmailStr] = None
    profile_picture: Optional[str] = optional_text(500)
    theme: Optional[Literal["light", "dark", "system"]] = None
    notif_email: Optional[bool] = None
    notif_push: Optional[bool] = None
    default_view: Optional[str] = optional_text(30)
    dashboard_config: Optional[dict] = None


# --- tasks --------------------------------------------------------------

class TaskCreateSchema(Schema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = optional_text(1000)
    priority: Priority = "Medium"
    category: Optional[str] = optional_text(50)
    type: Optional[str] = optional_text(50)
    date: Optional[UtcDatetime] = None
    time: Optional[str] = optional_text(20)
    location: Optional[str] = optional_text(200)
    deadline: Optional[UtcDatetime] = None
    estimated_time: Optional[PositiveInt] = None
    parent_task_id: Optional[int] = None


class TaskUpdateSchema(PartialUpdate):
    required = ("title", "priority", "completed")

    title: Optional[str] = optional_text(200, 1)
    description: Optional[str] = optional_text(1000)
    priority: Optional[Priority] = None
    category: Optional[str] = optional_text(50)
    type: Optional[str] = optional_text(50)
    date: Optional[UtcDatetime] = None
    time: Optional[str] = optional_text(20)
    location: Optional[str] = optional_text(200)
    deadline: Optional[UtcDatetime] = None
    estimated_time: Optional[PositiveInt] = None
    actual_time: Optional[NonNegativeInt] = None
    completed: Optional[bool] = None


class TaskListQuery(Schema):
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None


class DateRangeQuery(Schema):
    start: UtcDatetime
    end: UtcDatetime


class DependencySchema(Schema):
    dependency_id: int
    dependent_id: int


class SubtaskSchema(TaskCreateSchema):
    parent_task_id: int


class BatchPriorityItem(Schema):
    task_id: int
    priority: str


class PrioritizeSchema(Schema):
    task_id: Optional[int] = None
    action: Optional[str] = None
    batch_update: Optional[list[BatchPriorityItem]] = None

    @model_validator(mode="after")
    def require_target(self):
        if self.task_id is None and self.batch_update is None:
            raise ValueError("taskId or batchUpdate is required")
        return self


# --- habits and routine -------------------------------------------------

class HabitCreateSchema(Schema):
    name: str = Field(min_length=1, max_length=100)
    icon: str = Field(default="🧘", min_length=1, max_length=10)
    category: str = Field(min_length=1, max_length=50)
    frequency: str = Field(default="Daily", min_length=1, max_length=50)
    goal_value: PositiveInt = 1
    goal_unit: str = Field(default="times", min_length=1, max_length=20)
    reminder_time: str = Field(default="08:00", max_length=20)
    motivation: Optional[str] = optional_text(500)


class HabitUpdateSchema(PartialUpdate):
    required = ("name", "icon", "category", "frequency", "goal_value", "goal_unit", "reminder_time")

    name: Optional[str] = optional_text(100, 1)
    icon: Optional[str] = optional_text(10, 1)
    category: Optional[str] = optional_text(50, 1)
    frequency: Optional[str] = optional_text(50, 1)
    goal_value: Optional[PositiveInt] = None
    goal_unit: Optional[str] = optional_text(20, 1)
    reminder_time: Optional[str] = optional_text(20)
    motivation: Optional[str] = optional_text(500)


class ToggleSchema(Schema):
    date: Optional[dt.date] = None


class RoutineStepCreateSchema(Schema):
    time: str = Field(min_length=1, max_length=20)
    task: str = Field(min_length=1, max_length=200)
    icon: str = Field(min_length=1, max_length=10)
    category: str = Field(min_length=1, max_length=50)
    active: bool = True


class RoutineStepUpdateSchema(PartialUpdate):
    required = ("time", "task", "icon", "category", "active")

    time: Optional[str] = optional_text(20, 1)
    task: Optional[str] = optional_text(200, 1)
    icon: Optional[str] = optional_text(10, 1)
    category: Optional[str] = optional_text(50, 1)
    active: Optional[bool] = None


# --- goals --------------------------------------------------------------

class GoalCreateSchema(Schema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = optional_text(1000)
    specific: Optional[str] = optional_text(500)
    measurable: Optional[str] = optional_text(300)
    achievable: bool = True
    relevant: Optional[str] = optional_text(300)
    time_bound: Optional[UtcDatetime] = None
    target_value: Optional[PositiveFloat] = None
    current_value: NonNegativeFloat = 0
    unit: Optional[str] = optional_text(50)
    category: Optional[str] = optional_text(100)
    priority: Priority = "Medium"


class GoalProgressSchema(Schema):
    goal_id: int
    current_value: Optional[NonNegativeFloat] = None
    status: Optional[GoalStatus] = None


class MilestoneCreateSchema(Schema):
    goal_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = optional_text(1000)
    target_value: PositiveFloat
    current_value: NonNegativeFloat = 0
    deadline: Optional[UtcDatetime] = None


class MilestoneUpdateSchema(Schema):
    milestone_id: int
    current_value: Optional[NonNegativeFloat] = None
    completed: Optional[bool] = None


# --- teams --------------------------------------------------------------

class TeamCreateSchema(Schema):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = optional_text(500)


class AddMemberSchema(Schema):
    team_id: int
    member_email: EmailStr
    role: Literal["Admin", "Member"] = "Member"


class ProjectCreateSchema(Schema):
    team_id: int
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = optional_text(1000)
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None


class ProjectTaskCreateSchema(Schema):
    project_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = optional_text(1000)
    assigned_to: Optional[int] = None
    priority: Priority = "Medium"
    due_date: Optional[UtcDatetime] = None


class ProjectTaskStatusSchema(Schema):
    task_id: int
    status: ProjectTaskStatus


# --- accountability -----------------------------------------------------

class SendRequestSchema(Schema):
    recipient_email: EmailStr
    message: Optional[str] = optional_text(500)


class RespondRequestSchema(Schema):
    request_id: int
    accept: bool


class UpdatePartnershipSchema(Schema):
    partnership_id: int
    check_in_frequency: Optional[CheckInFrequency] = None
    status: Optional[PartnershipStatus] = None
    shared_goals: Optional[list[str]] = None


class CheckInSchema(Schema):
    partnership_id: int


# --- calendar -----------------------------------------------------------

class CalendarConnectSchema(Schema):
    provider: CalendarProvider
    auth_code: str = Field(min_length=1)


class CalendarEventSchema(Schema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = optional_text(1000)
    start: UtcDatetime
    end: UtcDatetime
    location: Optional[str] = optional_text(200)
    attendees: list[EmailStr] = []
    event_type: EventType = "Event"
    task_id: Optional[int] = None
    is_all_day: bool = False
    reminders: list[NonNegativeInt] = []
    connection_id: Optional[int] = None

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end <= self.start:
            raise ValueError("End time must be after start time")
        return self


class CalendarEventUpdateSchema(PartialUpdate):
    required = ("title", "start", "end", "attendees", "event_type", "is_all_day", "reminders")

    event_id: int
    title: Optional[str] = optional_text(200, 1)
    description: Optional[str] = optional_text(1000)
    start: Optional[UtcDatetime] = None
    end: Optional[UtcDatetime] = None
    location: Optional[str] = optional_text(200)
    attendees: Optional[list[EmailStr]] = None
    event_type: Optional[EventType] = None
    task_id: Optional[int] = None
    is_all_day: Optional[bool] = None
    reminders: Optional[list[NonNegativeInt]] = None


class CalendarToggleSchema(Schema):
    connection_id: int
    enabled: bool


# --- notifications and analytics ----------------------------------------

class NotificationCreateSchema(Schema):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    type: NotificationType = "info"


class NotificationReadSchema(Schema):
    id: Union[int, Literal["all"]]


class PredictTasksSchema(Schema):
    task_ids: list[int] = Field(min_length=1)
