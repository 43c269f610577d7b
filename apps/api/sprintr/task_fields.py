from __future__ import annotations

from enum import Enum


class TaskStatus(str, Enum):
  TODO = "TODO"
  IN_PROGRESS = "IN_PROGRESS"
  TESTING = "TESTING"
  BACKED_TODO = "BACKED_TODO"
  WAITING_FOR_BUILD = "WAITING_FOR_BUILD"
  IMPROVEMENT = "IMPROVEMENT"
  SUGGESTION = "SUGGESTION"
  INVALID = "INVALID"
  UNABLE_TO_CHANGE = "UNABLE_TO_CHANGE"
  UNABLE_TO_REPLICATE = "UNABLE_TO_REPLICATE"
  NOT_MENTIONED_BY_PM = "NOT_MENTIONED_BY_PM"
  DONE = "DONE"


class TaskWorkType(str, Enum):
  SUGGESTION = "SUGGESTION"
  TASK = "TASK"
  BUG = "BUG"
  STORY = "STORY"
  IMPROVEMENT = "IMPROVEMENT"


class TaskPriority(str, Enum):
  URGENT = "URGENT"
  HIGH = "HIGH"
  MEDIUM = "MEDIUM"
  LOW = "LOW"


class MemberRole(str, Enum):
  ADMIN = "ADMIN"
  MEMBER = "MEMBER"


class NotificationType(str, Enum):
  TASK_ASSIGNED = "task_assigned"
  TASK_CREATED = "task_created"
  COMMENT_ADDED = "comment_added"
  MENTIONED = "mentioned"


# Fields a task history row may name; "created" marks the insert itself.
HISTORY_FIELDS = ("created", "assigneeId", "summary", "description", "status", "priority", "workType", "projectId")

TASK_STATUS_LABELS: dict[str, str] = {
  TaskStatus.TODO.value: "TO DO",
  TaskStatus.IN_PROGRESS.value: "IN PROGRESS",
  TaskStatus.TESTING.value: "TESTING",
  TaskStatus.BACKED_TODO.value: "BACKED TODO",
  TaskStatus.WAITING_FOR_BUILD.value: "WAITING FOR BUILD",
  TaskStatus.IMPROVEMENT.value: "IMPROVEMENT",
  TaskStatus.SUGGESTION.value: "SUGGESTION",
  TaskStatus.INVALID.value: "INVALID",
  TaskStatus.UNABLE_TO_CHANGE.value: "UNABLE TO CHANGE",
  TaskStatus.UNABLE_TO_REPLICATE.value: "UNABLE TO REPLICATE",
  TaskStatus.NOT_MENTIONED_BY_PM.value: "NOT MENTION BY PM",
  TaskStatus.DONE.value: "DONE",
}

TASK_WORK_TYPE_LABELS: dict[str, str] = {
  TaskWorkType.SUGGESTION.value: "Suggestions",
  TaskWorkType.TASK.value: "Task",
  TaskWorkType.BUG.value: "Bug",
  TaskWorkType.STORY.value: "Story",
  TaskWorkType.IMPROVEMENT.value: "Improvment",
}

TASK_PRIORITY_LABELS: dict[str, str] = {
  TaskPriority.URGENT.value: "Urgent",
  TaskPriority.HIGH.value: "High",
  TaskPriority.MEDIUM.value: "Medium",
  TaskPriority.LOW.value: "Low",
}

POSITION_STEP = 1000
POSITION_MIN = 1000
POSITION_MAX = 100_000
