from avatar_jobs.models.doctor_profile import DoctorProfile
from avatar_jobs.models.job import GenerationJob

__all__ = ["DoctorProfile", "GenerationJob"]
