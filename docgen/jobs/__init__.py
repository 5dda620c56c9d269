"""In-process extraction job queue and its pipeline stages."""

from docgen.jobs.queue import Job, JobQueue, JobState, RateLimiter
from docgen.jobs.stages import CURL_STAGE, EMBEDDINGS_STAGE, register_stages

__all__ = [
    "CURL_STAGE",
    "EMBEDDINGS_STAGE",
    "Job",
    "JobQueue",
    "JobState",
    "RateLimiter",
    "register_stages",
]
