"""Job-level quality assessment."""

from shared.enums import FileStatus, SubJobStatus
from shared.models import JobRecord, QualityResults


class QualityChecker:
    """Scores a job from its per-file and per-locale outcomes.

    Each check yields a pass ratio between 0 and 1; a check passes only at 1.
    The overall score is the mean ratio expressed as a percentage.
    """

    CHECKS = ("upload_integrity", "locale_coverage", "translation_completeness")

    async def assess(self, record: JobRecord) -> QualityResults:
        files = record.uploaded_files
        sub_jobs = record.sub_jobs
        issues: list[str] = []

        for item in files:
            if item.status == FileStatus.FAILED:
                issues.append(f"Upload failed for {item.original_path}: {item.error}")
        for sub_job in sub_jobs:
            if sub_job.status == SubJobStatus.FAILED:
                issues.append(f"Translation for {sub_job.locale} failed: {sub_job.error}")
            elif sub_job.status != SubJobStatus.COMPLETED:
                issues.append(
                    f"Translation for {sub_job.locale} still in progress "
                    f"({sub_job.percent_complete:g}%)"
                )

        ratios = {
            "upload_integrity": self._ratio(
                sum(item.status == FileStatus.UPLOADED for item in files), len(files)
            ),
            "locale_coverage": self._ratio(
                sum(sub_job.status != SubJobStatus.FAILED for sub_job in sub_jobs), len(sub_jobs)
            ),
            "translation_completeness": self._ratio(
                sum(sub_job.status == SubJobStatus.COMPLETED for sub_job in sub_jobs),
                len(sub_jobs),
            ),
        }

        return QualityResults(
            overall_score=round(sum(ratios.values()) / len(ratios) * 100, 1),
            checks=list(self.CHECKS),
            issues=issues,
            passed_checks=sum(ratio >= 1.0 for ratio in ratios.values()),
        )

    @staticmethod
    def _ratio(passed: int, total: int) -> float:
        return passed / total if total else 0.0
