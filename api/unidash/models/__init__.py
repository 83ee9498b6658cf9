# Importing the models registers them on Base.metadata
from .batch import Batch
from .profile import StudentProfile
from .module import Module
from .content_version import ModuleContentVersion
from .past_paper import PastPaperStructure
from .continuous_assessment import ContinuousAssessment
from .edit_log import EditLog
