"""HTML report generation for adaptation passes."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List

from jinja2 import Template

from .models import LinkState, SectionSummary


class ReportGenerator:
    """Generates HTML reports for adaptation results."""

    TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Adaptation Report</title>
    <style>
        body {
            font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
            max-width: 1200px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
        }
        .header {
            background-color: #2c3e50;
            color: white;
            padding: 30px;
            border-radius: 8px;
            margin-bottom: 30px;
        }
        .header h1 { margin: 0 0 10px 0; }
        .status-success { color: #27ae60; font-weight: bold; }
        .status-warning { color: #f39c12; font-weight: bold; }
        .status-error { color: #e74c3c; font-weight: bold; }
        .section {
            background: white;
            padding: 20px;
            margin-bottom: 20px;
            border-radius: 8px;
            box-shadow: 0 2px 4px rgba(0,0,0,0.1);
        }
        .section h2 {
            color: #2c3e50;
            border-bottom: 2px solid #3498db;
            padding-bottom: 10px;
            margin-top: 0;
        }
        .stats {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 15px;
        }
        .stat-item { background: #ecf0f1; padding: 15px; border-radius: 5px; }
        .stat-label { font-size: 0.9em; color: #7f8c8d; margin-bottom: 5px; }
        .stat-value { font-size: 1.5em; font-weight: bold; color: #2c3e50; }
        table { width: 100%; border-collapse: collapse; margin-top: 10px; }
        th, td { text-align: left; padding: 6px 8px; border-bottom: 1px solid #ecf0f1; }
        .state-adapted { color: #27ae60; }
        .state-unadapted { color: #e74c3c; }
        .state-unresolved { color: #7f8c8d; }
        .flag { font-size: 0.85em; color: #c0392b; margin-left: 5px; }
        .footer { text-align: center; color: #7f8c8d; margin-top: 30px; padding: 20px; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Link and Reference Adaptation Report</h1>
        <p><strong>Source:</strong> {{ source_file }} ({{ source_language }})</p>
        <p><strong>Translation:</strong> {{ target_file }} ({{ target_language }})</p>
        <p><strong>Generated:</strong> {{ timestamp }}</p>
        <p><strong>Status:</strong>
            <span class="status-{{ status_class }}">{{ status_text }}</span>
        </p>
    </div>

    <div class="section">
        <h2>Statistics</h2>
        <div class="stats">
            {% for label, value in stats.items() %}
            <div class="stat-item">
                <div class="stat-label">{{ label }}</div>
                <div class="stat-value">{{ value }}</div>
            </div>
            {% endfor %}
        </div>
    </div>

    {% for section in sections %}
    {% if section.links or section.references_adapted or section.references_failed %}
    <div class="section">
        <h2>Section {{ section.section_id }}{% if section.restored_from_draft %} (restored draft){% endif %}</h2>
        <p>References: {{ section.references_adapted }} adapted, {{ section.references_failed }} not adapted</p>
        {% if section.links %}
        <table>
            <tr><th>Id</th><th>Source title</th><th>Translation title</th><th>State</th></tr>
            {% for link in section.links %}
            <tr>
                <td>{{ link.identifier }}</td>
                <td>{{ link.source_title or "" }}</td>
                <td>{{ link.target_title or "" }}</td>
                <td>
                    <span class="state-{{ link.state.value }}">{{ link.state.value }}</span>
                    {% if link.red_link %}<span class="flag">red link</span>{% endif %}
                    {% if link.missing_article %}<span class="flag">missing article</span>{% endif %}
                </td>
            </tr>
            {% endfor %}
        </table>
        {% endif %}
    </div>
    {% endif %}
    {% endfor %}

    <div class="footer">
        <p>Generated by translation-adapter</p>
        <p>Exit Code: {{ exit_code }}</p>
    </div>
</body>
</html>
"""

    @staticmethod
    def summarize(sections: List[SectionSummary]) -> Dict[str, int]:
        """Totals over all sections."""
        return {
            "sections": len(sections),
            "links": sum(len(s.links) for s in sections),
            "adapted": sum(s.count(LinkState.ADAPTED) for s in sections),
            "unadapted": sum(s.count(LinkState.UNADAPTED) for s in sections),
            "red_links": sum(s.count(LinkState.RED_LINK) for s in sections),
            "missing_articles": sum(s.count(LinkState.MISSING_ARTICLE) for s in sections),
            "references_adapted": sum(s.references_adapted for s in sections),
            "references_failed": sum(s.references_failed for s in sections),
        }

    def generate_report(
        self,
        source_file: str,
        target_file: str,
        source_language: str,
        target_language: str,
        sections: List[SectionSummary],
        execution_time: float,
        exit_code: int,
        output_path: str,
    ) -> str:
        """Generate HTML report.

        Args:
            source_file: Path of the source article
            target_file: Path of the translation
            source_language: Source language code
            target_language: Translation language code
            sections: Summaries of the adapted sections
            execution_time: Total execution time in seconds
            exit_code: Process exit code
            output_path: Path to save report

        Returns:
            Path to generated report
        """
        totals = self.summarize(sections)
        stats = {
            "Sections": totals["sections"],
            "Links": totals["links"],
            "Adapted": totals["adapted"],
            "Unadapted": totals["unadapted"],
            "Red links": totals["red_links"],
            "Missing articles": totals["missing_articles"],
            "References adapted": totals["references_adapted"],
            "Execution time": f"{execution_time:.1f}s",
        }

        if exit_code == 0:
            status_text = "SUCCESS"
            status_class = "success"
        elif exit_code == 1:
            status_text = f"COMPLETED WITH WARNINGS ({totals['unadapted']} unadapted links)"
            status_class = "warning"
        else:
            status_text = f"FAILED (Exit code: {exit_code})"
            status_class = "error"

        template = Template(self.TEMPLATE, autoescape=True)
        html = template.render(
            source_file=source_file,
            target_file=target_file,
            source_language=source_language,
            target_language=target_language,
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            status_text=status_text,
            status_class=status_class,
            stats=stats,
            sections=sections,
            exit_code=exit_code,
        )

        report_path = Path(output_path)
        report_path.parent.mkdir(parents=True, exist_ok=True)

        with open(report_path, 'w', encoding='utf-8') as f:
            f.write(html)

        return str(report_path)
