from .user import User, Role
from .intake import Intake
from .course import Course
from .enrollment import Enrollment
from .mark import Mark
from .mcq_test import MCQTest
from .submission import TestSubmission
from .group_profile import GroupProfile
from .notification import Notification
from .system_settings import SystemSettings
__all__ = ["User", "Role", "Intake", "Course", "Enrollment", "Mark", "MCQTest", "TestSubmission", "GroupProfile", "Notification", "SystemSettings"]
