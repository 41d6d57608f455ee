from enum import Enum

class SubjectType(str, Enum):
    LessonPlanner = "lesson_planner"
    WorkDiary = "work_diary"
    LeaveApplication = "leave_application"
    SubstitutionRequest = "substitution_request"


class ApprovalStatus(str, Enum):
    Draft = "draft"
    Submitted = "submitted"
    Pending = "pending"              # submitted, for subjects with no draft stage
    HodApproved = "hod_approved"
    Approved = "approved"
    PrincipalApproved = "principal_approved"
    Rejected = "rejected"
    Cancelled = "cancelled"
