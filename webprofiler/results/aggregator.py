"""Report formatting and per-attempt export."""

from typing import List, Optional, Sequence

import pandas as pd

from ..core.models import AttemptOutcome, ProfileReport, failure_details

NO_SUCCESSES = "n/a (no successful responses)"


def format_duration(seconds: Optional[float]) -> str:
    """Format a duration in milliseconds below one second, seconds above."""
    if seconds is None:
        return NO_SUCCESSES
    if seconds < 1:
        return f"{seconds * 1000:.3f}ms"
    return f"{seconds:.3f}s"


def format_size(size: Optional[int]) -> str:
    if size is None:
        return NO_SUCCESSES
    return f"{size} B"


def format_percentage(value: float) -> str:
    """Round to one decimal and drop a trailing ``.0``."""
    text = f"{value:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}%"


def format_codes(codes) -> str:
    return "{" + ", ".join(str(c) for c in sorted(codes)) + "}"


def format_report(report: ProfileReport) -> str:
    """Render the report with its fixed field order."""
    lines = [
        f"Number of requests: {report.request_count}",
        f"Percentage succeeded connecting: {format_percentage(report.success_percentage)}",
        "Percentage of successful responses with non-200 response codes "
        f"(includes redirects, etc.): {format_percentage(report.error_status_percentage)}",
        f"Unique non-200 error codes encountered: {format_codes(report.error_status_codes)}",
        f"Fastest response time: {format_duration(report.fastest)}",
        f"Mean response time: {format_duration(report.mean)}",
        f"Median response time: {format_duration(report.median)}",
        f"Slowest response time: {format_duration(report.slowest)}",
        f"Smallest size: {format_size(report.smallest_size)}",
        f"Largest size: {format_size(report.largest_size)}",
        "Connection errors encountered, if any: "
        f"[{', '.join(failure_details(list(report.failures)))}]",
    ]
    if report.request_count > 1:
        longest = len(report.longest_body) if report.longest_body is not None else None
        lines.append(f"Longest response body: {format_size(longest)}")
    return "\n".join(lines)


def format_body(body: bytes) -> str:
    """Decode a raw body for display without assuming its encoding."""
    return body.decode("utf-8", errors="replace")


class ReportPrinter:
    """Prints reports and exports per-attempt outcomes."""

    def __init__(self, outcomes: Optional[Sequence[AttemptOutcome]] = None):
        self.outcomes: List[AttemptOutcome] = list(outcomes or [])

    def to_dataframe(self) -> pd.DataFrame:
        """Convert per-attempt outcomes to a pandas DataFrame."""
        data = []
        for outcome in self.outcomes:
            row = outcome.to_dict()
            data.append({
                "Attempt": row["attempt"],
                "Success": row["success"],
                "Status": row["status"],
                "Size_B": row["body_size"],
                "Elapsed_ms": (
                    f"{row['elapsed'] * 1000:.3f}" if row["elapsed"] is not None else None
                ),
                "Phase": row["phase"],
                "Detail": row["detail"],
            })
        return pd.DataFrame(
            data,
            columns=["Attempt", "Success", "Status", "Size_B", "Elapsed_ms", "Phase", "Detail"],
        )

    def to_csv(self, path: str) -> None:
        """Export to CSV file."""
        df = self.to_dataframe()
        df.to_csv(path, index=False)

    def to_tsv(self, path: str) -> None:
        """Export to TSV file."""
        df = self.to_dataframe()
        df.to_csv(path, sep="\t", index=False)

    def export(self, path: str) -> None:
        """Export by extension: ``.csv`` as CSV, anything else as TSV."""
        if path.lower().endswith(".csv"):
            self.to_csv(path)
        else:
            self.to_tsv(path)

    def get_tsv_string(self) -> str:
        """Get outcomes as TSV string for easy copy/paste to spreadsheet."""
        df = self.to_dataframe()
        return df.to_csv(sep="\t", index=False)

    def print_tsv(self) -> None:
        """Print per-request outcomes as a TSV block."""
        print()
        print("=" * 80)
        print("TSV OUTPUT (copy to spreadsheet):")
        print("=" * 80)
        print(self.get_tsv_string())
        print("=" * 80)

    def print_report(self, report: ProfileReport, show_body: bool = False) -> None:
        """Print the report, optionally preceded by the representative body."""
        if show_body and report.request_count > 1:
            if report.longest_body is not None:
                print(
                    "The following is the longest raw response body we received, "
                    "which we take as representative:\n"
                )
                print(format_body(report.longest_body))
                print()
            else:
                print("Could not display representative response body (no successful responses)")
        print(format_report(report))
