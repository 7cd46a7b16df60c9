# Services package - Job Store, trigger, translation and assembly
from storystudio.services.job_store import JobStore, SQLJobStore
from storystudio.services.trigger import JobTrigger
from storystudio.services.steps import translate_step
from storystudio.services.assembler import ResultAssembler
from storystudio.services.submissions import SubmissionStore, RedisSubmissionStore

__all__ = [
    "JobStore",
    "SQLJobStore",
    "JobTrigger",
    "translate_step",
    "ResultAssembler",
    "SubmissionStore",
    "RedisSubmissionStore",
]
