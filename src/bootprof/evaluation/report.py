"""
Run Report

Charts and a Markdown summary for one profile run, written to a report
directory. Useful for attaching startup cost to a pull request or keeping a
history of runs next to CI artifacts.
"""

import warnings
from pathlib import Path
from typing import Dict, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from ..schemas import ProfileResult
from ..utils.logger import get_logger
from .render import format_component_name

# Suppress matplotlib warnings
warnings.filterwarnings('ignore', category=UserWarning, module='matplotlib')

log = get_logger("RunReport")


class RunReport:
    """Plots and Markdown for a completed profile run."""

    def __init__(self, result: ProfileResult, output_dir: Path, top: int = 20,
                 max_name_length: int = 50):
        """
        Initialize report.

        Args:
            result: Completed profile run
            output_dir: Directory to save plots and reports
            top: Number of components to chart
            max_name_length: Display truncation for component names
        """
        self.result = result
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.top = top
        self.max_name_length = max_name_length

        sns.set_palette("husl")
        self.df = self._create_dataframe()

    def _create_dataframe(self) -> pd.DataFrame:
        rows = []
        for name, r in self.result.snapshot.components.items():
            rows.append({
                'component': format_component_name(name, self.max_name_length),
                'register_time': r.value('register_time'),
                'boot_time': r.value('boot_time'),
                'total_time': r.value('total_time'),
                'total_memory_kb': r.total_memory / 1024,
                'deferred': r.is_deferred,
                'failed': r.error is not None,
            })
        return pd.DataFrame(rows)

    def plot_slowest_components(self) -> Optional[Path]:
        """Horizontal bar chart of total time for the slowest components."""
        if self.df.empty:
            log.warning("No data available for plotting")
            return None

        data = self.df.nlargest(self.top, 'total_time')
        fig, ax = plt.subplots(figsize=(12, max(4, 0.4 * len(data))))
        sns.barplot(data=data, x='total_time', y='component', ax=ax, color='skyblue')
        ax.axvline(self.result.options.threshold, color='red', linestyle='--',
                   label=f'Slow threshold: {self.result.options.threshold}s')
        ax.set_title(f'Slowest {len(data)} Components (Total Time)')
        ax.set_xlabel('Seconds')
        ax.set_ylabel('')
        ax.legend()

        plt.tight_layout()
        output_path = self.output_dir / "slowest_components.png"
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

        log.info(f"Saved slowest components plot to {output_path}")
        return output_path

    def plot_phase_breakdown(self) -> Optional[Path]:
        """Stacked register/boot time for the slowest components."""
        if self.df.empty:
            log.warning("No data available for plotting")
            return None

        data = self.df.nlargest(self.top, 'total_time').set_index('component')
        fig, ax = plt.subplots(figsize=(12, max(4, 0.4 * len(data))))
        data[['register_time', 'boot_time']].plot(kind='barh', stacked=True, ax=ax,
                                                  color=['lightcoral', 'lightgreen'])
        ax.invert_yaxis()
        ax.set_title('Register vs Boot Time')
        ax.set_xlabel('Seconds')
        ax.set_ylabel('')

        plt.tight_layout()
        output_path = self.output_dir / "phase_breakdown.png"
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

        log.info(f"Saved phase breakdown plot to {output_path}")
        return output_path

    def generate_markdown_report(self) -> Path:
        stats = self.result.statistics
        lines = [
            "# Startup Profile Report",
            "",
            "## Overview",
            f"- **Components**: {stats.total_components}",
            f"- **Successful**: {stats.successful_components}",
            f"- **Failed**: {stats.failed_components}",
            f"- **Deferred**: {stats.deferred_components}",
            f"- **Slow (>= {self.result.options.threshold}s)**: {len(stats.slow_components)}",
            f"- **Total Time**: {stats.total_time or 0:.4f}s",
            f"- **Median Time**: {stats.median_time or 0:.4f}s",
            "",
        ]

        if stats.percentiles:
            lines += ["## Percentiles (Total Time)", ""]
            lines += [f"- P{p}: {v:.6f}s" for p, v in stats.percentiles.items()]
            lines.append("")

        if not self.df.empty:
            lines += ["## Slowest Components", "", "| Component | Register (s) | Boot (s) | Total (s) |",
                      "| --- | --- | --- | --- |"]
            for _, row in self.df.nlargest(self.top, 'total_time').iterrows():
                lines.append(f"| {row['component']} | {row['register_time']:.6f} | "
                             f"{row['boot_time']:.6f} | {row['total_time']:.6f} |")
            lines.append("")

        output_path = self.output_dir / "profile_report.md"
        with open(output_path, 'w') as f:
            f.write("\n".join(lines))

        log.info(f"Generated Markdown report: {output_path}")
        return output_path

    def generate_full_report(self) -> Dict[str, Path]:
        """Generate every report output; a failing part is logged and skipped."""
        log.info("Generating profile report")
        outputs = {}

        try:
            outputs['slowest_plot'] = self.plot_slowest_components()
            outputs['phase_plot'] = self.plot_phase_breakdown()
        except Exception as e:
            log.warning(f"Plot generation failed: {e}")

        try:
            outputs['markdown_report'] = self.generate_markdown_report()
        except OSError as e:
            log.warning(f"Report generation failed: {e}")

        outputs = {k: v for k, v in outputs.items() if v is not None}
        log.info(f"Generated profile report with {len(outputs)} outputs")
        return outputs
