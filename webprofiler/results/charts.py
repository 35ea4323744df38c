"""Chart generation for profiling runs."""

from datetime import datetime
from typing import Optional, Sequence

import matplotlib.pyplot as plt

from ..core.models import AttemptFailure, AttemptOutcome, AttemptSuccess


def generate_latency_chart(
    outcomes: Sequence[AttemptOutcome],
    output_path: Optional[str] = None,
    show: bool = False,
    title: str = "Response Times",
) -> Optional[str]:
    """
    Plot per-attempt response times and their distribution.

    Args:
        outcomes: Outcomes of a profiling run
        output_path: Path to save the chart (auto-generated if None)
        show: Whether to display the chart
        title: Figure title

    Returns:
        Path to saved chart file, or None if there was nothing to plot
    """
    successes = sorted(
        (o for o in outcomes if isinstance(o, AttemptSuccess)), key=lambda o: o.attempt
    )
    failures = [o for o in outcomes if isinstance(o, AttemptFailure)]
    if not successes and not failures:
        print("No outcomes to chart.")
        return None

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(15, 6))
    fig.suptitle(title, fontsize=16, fontweight="bold")

    # Per-attempt latency
    ax1.plot(
        [o.attempt for o in successes],
        [o.elapsed * 1000 for o in successes],
        "b-o",
        label="Success",
        linewidth=2,
        markersize=4,
    )
    if failures:
        ax1.plot(
            [o.attempt for o in failures],
            [0] * len(failures),
            "rx",
            label="Failure",
            markersize=8,
        )
    ax1.set_xlabel("Request")
    ax1.set_ylabel("Response time (ms)")
    ax1.set_title("Response Time per Request")
    ax1.legend()
    ax1.grid(True, alpha=0.3)

    # Distribution
    ax2.hist([o.elapsed * 1000 for o in successes], bins=20, color="g", alpha=0.7)
    ax2.set_xlabel("Response time (ms)")
    ax2.set_ylabel("Requests")
    ax2.set_title("Response Time Distribution")
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()

    if output_path:
        saved_path = output_path
    else:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        saved_path = f"profile_latency_{timestamp}.png"

    plt.savefig(saved_path, dpi=150, bbox_inches="tight")
    print(f"\nChart saved as: {saved_path}")

    if show:
        plt.show()
    plt.close(fig)

    return saved_path
