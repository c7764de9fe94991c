"""
HTML Report Generation for the NCP Analyzer.

Uses Jinja2 templates to generate self-contained HTML reports.
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from jinja2 import BaseLoader, Environment, FileSystemLoader

from ncp_analyzer import __version__

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "report_netncp.html.j2"

# Inline template for when template file is not found
INLINE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>NCP Analyzer - netNCP Report</title>
    <style>
        :root {
            --primary: #047857;
            --bg: #f8fafc;
            --card-bg: #ffffff;
            --text: #1e293b;
            --text-muted: #64748b;
            --border: #e2e8f0;
            --warning: #f59e0b;
            --danger: #ef4444;
        }

        * { margin: 0; padding: 0; box-sizing: border-box; }

        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
            background: var(--bg);
            color: var(--text);
            line-height: 1.6;
            padding: 2rem;
        }

        .container { max-width: 1200px; margin: 0 auto; }

        header {
            background: linear-gradient(135deg, var(--primary), #065f46);
            color: white;
            padding: 2rem;
            border-radius: 12px;
            margin-bottom: 2rem;
        }

        header h1 { font-size: 2rem; font-weight: 700; margin-bottom: 0.5rem; }
        header .meta { opacity: 0.9; font-size: 0.9rem; }

        .card {
            background: var(--card-bg);
            border-radius: 12px;
            padding: 1.5rem;
            margin-bottom: 1.5rem;
            border: 1px solid var(--border);
        }

        .card h2 {
            color: var(--primary);
            font-size: 1.25rem;
            margin-bottom: 1rem;
            padding-bottom: 0.5rem;
            border-bottom: 2px solid var(--border);
        }

        .stats-grid {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(180px, 1fr));
            gap: 1rem;
        }

        .stat-card {
            background: #ecfdf5;
            padding: 1.25rem;
            border-radius: 10px;
            text-align: center;
            border: 1px solid #6ee7b7;
        }

        .stat-value { font-size: 2rem; font-weight: 700; color: var(--primary); }
        .stat-label { font-size: 0.85rem; color: var(--text-muted); }

        table { width: 100%; border-collapse: collapse; font-size: 0.9rem; }
        th, td { padding: 0.5rem 0.75rem; text-align: left; border-bottom: 1px solid var(--border); }
        th { background: #f1f5f9; font-weight: 600; }

        .warning-box {
            background: #fffbeb;
            border-left: 4px solid var(--warning);
            padding: 1rem;
            margin-top: 1rem;
            border-radius: 4px;
            font-size: 0.85rem;
        }

        .error-box {
            background: #fef2f2;
            border-left: 4px solid var(--danger);
            padding: 1rem;
            margin-top: 1rem;
            border-radius: 4px;
        }

        .figure { text-align: center; margin: 1rem 0; }
        .figure img { max-width: 100%; border-radius: 8px; }
        .figure-caption { color: var(--text-muted); font-size: 0.85rem; margin-top: 0.5rem; }

        footer { text-align: center; padding: 2rem; color: var(--text-muted); font-size: 0.85rem; }
    </style>
</head>
<body>
    <div class="container">
        <header>
            <h1>🌲 NCP Analyzer — netNCP Report</h1>
            <div class="meta">
                Scenario: {{ input_file }} (seed {{ seed }})<br>
                Generated: {{ timestamp }}
            </div>
        </header>

        <div class="card">
            <h2>📊 Summary</h2>
            <div class="stats-grid">
                <div class="stat-card">
                    <div class="stat-value">{{ n_forest_types }}</div>
                    <div class="stat-label">Forest Types</div>
                </div>
                <div class="stat-card">
                    <div class="stat-value">{{ n_records }}</div>
                    <div class="stat-label">Indicator Records</div>
                </div>
                <div class="stat-card">
                    <div class="stat-value">{{ n_ncps }}</div>
                    <div class="stat-label">NCPs</div>
                </div>
                <div class="stat-card">
                    <div class="stat-value">{{ n_groups }}</div>
                    <div class="stat-label">Stakeholder Groups Scored</div>
                </div>
                <div class="stat-card">
                    <div class="stat-value">{{ n_scenarios }}</div>
                    <div class="stat-label">Sensitivity Scenarios</div>
                </div>
            </div>

            {% if aborted_groups %}
            <div class="error-box">
                <strong>Groups not scored</strong>
                {% for group, reason in aborted_groups.items() %}
                <div>{{ group }}: {{ reason }}</div>
                {% endfor %}
            </div>
            {% endif %}

            {% if sensitivity_aborted %}
            <div class="error-box">
                <strong>Cells left out of the sensitivity analysis</strong>
                {% for cell, reason in sensitivity_aborted.items() %}
                <div>{{ cell }}: {{ reason }}</div>
                {% endfor %}
            </div>
            {% endif %}

            {% if warnings %}
            <div class="warning-box">
                <strong>⚠️ Warnings</strong>
                {% for warning in warnings %}
                <div>{{ warning }}</div>
                {% endfor %}
            </div>
            {% endif %}
        </div>

        <div class="card">
            <h2>🌿 netNCP by Group and Forest Type</h2>
            <table>
                <thead>
                    <tr><th>Group</th><th>Forest type</th><th>Replicates</th><th>Mean</th><th>SD</th></tr>
                </thead>
                <tbody>
                    {% for row in net_ncp %}
                    <tr>
                        <td>{{ row.group }}</td>
                        <td>{{ row.forest_type }}</td>
                        <td>{{ row.n_replicates }}</td>
                        <td><strong>{{ "%.3f"|format(row.mean) }}</strong></td>
                        <td>{{ "%.3f"|format(row.sd) }}</td>
                    </tr>
                    {% endfor %}
                </tbody>
            </table>
            {% if plot_net_ncp %}
            <div class="figure">
                <img src="{{ plot_net_ncp }}" alt="netNCP">
                <div class="figure-caption">netNCP mean ± sd across replicates</div>
            </div>
            {% endif %}
        </div>

        <div class="card">
            <h2>📈 Supply-Benefit Relationships</h2>
            <table>
                <thead>
                    <tr><th>NCP</th><th>Shape</th><th>Supply min</th><th>Supply max</th><th>Threshold</th></tr>
                </thead>
                <tbody>
                    {% for ncp in ncps %}
                    <tr>
                        <td>{{ ncp.name }}</td>
                        <td>{{ ncp.shape.value }}</td>
                        <td>{{ ncp.supply_min }}</td>
                        <td>{{ ncp.supply_max }}</td>
                        <td>{{ ncp.threshold if ncp.threshold is not none else '-' }}</td>
                    </tr>
                    {% endfor %}
                </tbody>
            </table>
            {% if plot_sb_curves %}
            <div class="figure">
                <img src="{{ plot_sb_curves }}" alt="SB curves">
                <div class="figure-caption">SB curves with observed realised supply</div>
            </div>
            {% endif %}
        </div>

        <div class="card">
            <h2>⚖️ Relative Priorities</h2>
            <table>
                <thead>
                    <tr><th>Group</th><th>NCP</th><th>Points</th><th>Relative priority</th></tr>
                </thead>
                <tbody>
                    {% for row in relative_priority %}
                    <tr>
                        <td>{{ row.group }}</td>
                        <td>{{ row.ncp }}</td>
                        <td>{{ row.points }}</td>
                        <td>{{ "%.3f"|format(row.relative_priority) }}</td>
                    </tr>
                    {% endfor %}
                </tbody>
            </table>
        </div>

        {% if sensitivity_top %}
        <div class="card">
            <h2>🔬 Sensitivity</h2>
            <p style="color: var(--text-muted); margin-bottom: 1rem;">
                Largest relative change in netNCP mean per group and perturbation type.
            </p>
            <table>
                <thead>
                    <tr><th>Group</th><th>Perturbation</th><th>Input</th><th>Change</th><th>Forest type</th><th>Relative change</th></tr>
                </thead>
                <tbody>
                    {% for row in sensitivity_top %}
                    <tr>
                        <td>{{ row.group }}</td>
                        <td>{{ row.sensitivity_type }}</td>
                        <td>{{ row.sensitivity_detail }}</td>
                        <td>{{ "%+.0f"|format(row.change * 100) }}%</td>
                        <td>{{ row.forest_type }}</td>
                        <td><strong>{{ "%+.2f"|format(row.relative_change * 100) }}%</strong></td>
                    </tr>
                    {% endfor %}
                </tbody>
            </table>
            {% if plot_sensitivity %}
            <div class="figure">
                <img src="{{ plot_sensitivity }}" alt="Sensitivity">
                <div class="figure-caption">Relative change in netNCP under ±perturbations</div>
            </div>
            {% endif %}
        </div>
        {% endif %}

        <div class="card">
            <h2>📐 Methodology</h2>
            <table>
                <thead><tr><th>Step</th><th>Definition</th></tr></thead>
                <tbody>
                    <tr><td><strong>Supply</strong></td><td>Indicators aggregated per NCP (sum, direct, or mean of globally min-max normalized fields)</td></tr>
                    <tr><td><strong>Realised supply</strong></td><td>Potential supply × access fraction of the group</td></tr>
                    <tr><td><strong>Benefit</strong></td><td>SB relationship of realised supply, in [-1, 1] within the declared range</td></tr>
                    <tr><td><strong>Relative priority</strong></td><td>Priority points / total points of the group</td></tr>
                    <tr><td><strong>netNCP</strong></td><td>Σ benefit × relative priority over NCPs, per replicate; mean and sd (n−1) across replicates</td></tr>
                </tbody>
            </table>
        </div>

        <footer>
            <p>Generated by NCP Analyzer v{{ version }}</p>
            <p>{{ timestamp }}</p>
        </footer>
    </div>
</body>
</html>
"""


def encode_image_base64(path: Path) -> str:
    """Encode an image file as base64 data URI."""
    if not path.exists():
        return ""

    with open(path, "rb") as f:
        data = base64.b64encode(f.read()).decode("utf-8")

    suffix = path.suffix.lower()
    mime = {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".svg": "image/svg+xml",
    }.get(suffix, "image/png")

    return f"data:{mime};base64,{data}"


def generate_html_report(
    results: Any,
    plot_paths: Dict[str, Path],
    output_path: Path,
    template_name: str = DEFAULT_TEMPLATE,
    embed_images: bool = True
) -> None:
    """
    Generate HTML report from analysis results.

    Args:
        results: AnalysisResults from run_analysis
        plot_paths: Dict of plot name -> Path
        output_path: Output HTML file path
        template_name: Name of the Jinja2 template to use
        embed_images: If True, embed images as base64
    """
    template_dir = Path(__file__).parent.parent.parent / "templates"
    template_file = template_dir / template_name

    if template_file.exists():
        env = Environment(loader=FileSystemLoader(str(template_dir)))
        template = env.get_template(template_name)
    elif template_name == DEFAULT_TEMPLATE:
        env = Environment(loader=BaseLoader())
        template = env.from_string(INLINE_TEMPLATE)
    else:
        raise FileNotFoundError(f"Template {template_name} not found in {template_dir}")

    pipeline = results.pipeline
    sensitivity = results.sensitivity

    context = {
        "input_file": Path(results.input_file).name,
        "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "version": __version__,
        "seed": pipeline.seed,
        "warnings": results.warnings,
        "aborted_groups": pipeline.aborted_groups,
        "sensitivity_aborted": sensitivity.aborted if sensitivity is not None else {},
        "ncps": results.ncps,
        "n_forest_types": pipeline.indicators["forest_type"].nunique(),
        "n_records": len(pipeline.indicators),
        "n_ncps": len(results.ncps),
        "n_groups": pipeline.net_ncp_overall["group"].nunique() if not pipeline.net_ncp_overall.empty else 0,
        "n_scenarios": len(sensitivity.plan) if sensitivity is not None else 0,
        "net_ncp": pipeline.net_ncp_overall.to_dict("records"),
        "relative_priority": pipeline.relative_priority.to_dict("records"),
        "sensitivity_top": results.sensitivity_top.to_dict("records"),
    }

    for name, path in plot_paths.items():
        if embed_images:
            context[f"plot_{name}"] = encode_image_base64(path)
        else:
            context[f"plot_{name}"] = f"../figures/{path.name}"

    html = template.render(**context)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(html)

    logger.info(f"Generated HTML report: {output_path}")
