from __future__ import annotations

import pandas as pd

from ..storage_types import SweepResult


def agents_frame(agents: dict[str, int]) -> pd.DataFrame:
    """Human user agents as a DataFrame sorted by occurrence (most frequent first)."""
    frame = pd.DataFrame(
        {"agent": list(agents.keys()), "sessions": list(agents.values())}
    )
    if frame.empty:
        return frame.assign(share=pd.Series(dtype="float64"))
    frame["share"] = (frame["sessions"] / frame["sessions"].sum() * 100).round(1)
    return frame.sort_values(
        ["sessions", "agent"], ascending=[False, True], ignore_index=True
    )


def summarize_sweep_result(result: SweepResult, max_agents: int = 10) -> str:
    """Produce a human-readable report of one sweep.

    Pure utility (no side effects), suitable for testing.
    """
    lines: list[str] = []
    lines.append("=== SESSION CLEANUP ===")
    lines.append(f"total: {result.total}")
    lines.append(f"processed: {result.processed}")
    lines.append(f"removed_bots: {result.removed_bots}")
    lines.append(f"removed_inactive: {result.removed_inactive}")
    lines.append(f"active: {result.active}")
    lines.append(f"failures: {result.failures}")

    frame = agents_frame(result.agents)
    lines.append("")
    if frame.empty:
        lines.append("No active human sessions.")
        return "\n".join(lines)

    lines.append(f"Top human agents ({min(len(frame), max_agents)} of {len(frame)}):")
    lines.append(frame.head(max_agents).to_string(index=False))
    return "\n".join(lines)
