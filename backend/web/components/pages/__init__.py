from .account import OnboardingPage, ProfilePage
from .admin import StudentRows, StudentsPage
from .auth import LoginPage, SignupPage
from .catalog import LecturesPage, SubjectsPage
from .common import AVATAR_OPTIONS, BOY_AVATAR, GIRL_AVATAR, Card, HomePage, LoadingPlaceholder, Notice
from .content import ContentErrorPage, EditPage, LectureForm, LecturesAdminPage, SubjectForm, SubjectsAdminPage
from .quiz import QuizPage, QuizResultPage, SubmissionsPage

__all__ = [
    "AVATAR_OPTIONS",
    "BOY_AVATAR",
    "GIRL_AVATAR",
    "Card",
    "ContentErrorPage",
    "EditPage",
    "HomePage",
    "LectureForm",
    "LecturesAdminPage",
    "LecturesPage",
    "LoadingPlaceholder",
    "LoginPage",
    "Notice",
    "OnboardingPage",
    "ProfilePage",
    "QuizPage",
    "QuizResultPage",
    "SignupPage",
    "StudentRows",
    "StudentsPage",
    "SubjectForm",
    "SubjectsAdminPage",
    "SubmissionsPage",
    "SubjectsPage",
]
