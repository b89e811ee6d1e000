"""Static HTML dashboard for a monitoring report."""

from jinja2 import Environment

from ..models import MonitoringReport

RECENT_RESULTS = 20

DASHBOARD_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <title>Test Monitoring Dashboard</title>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta http-equiv="refresh" content="30">
  <style>
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }
    .container { max-width: 1200px; margin: 0 auto; }
    .header, .metric-card, .test-list { background: white; padding: 20px; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
    .header { margin-bottom: 20px; }
    .metrics { display: grid; grid-template-columns: repeat(auto-fit, minmax(250px, 1fr)); gap: 20px; margin-bottom: 20px; }
    .metric-value { font-size: 36px; font-weight: bold; margin: 10px 0; }
    .metric-label { color: #666; font-size: 14px; }
    .health-score { width: 100px; height: 100px; border-radius: 50%; display: flex; align-items: center; justify-content: center; font-size: 24px; font-weight: bold; color: white; margin: 20px auto; }
    .health-good { background: #4caf50; }
    .health-warning { background: #ff9800; }
    .health-critical { background: #f44336; }
    .issues { background: #fff3cd; border: 1px solid #ffecd1; border-radius: 4px; padding: 15px; margin-bottom: 20px; }
    .recommendations { background: #d4edda; border: 1px solid #c3e6cb; border-radius: 4px; padding: 15px; }
    .test-list { margin-top: 20px; }
    table { width: 100%; border-collapse: collapse; }
    th, td { padding: 8px; text-align: left; border-bottom: 1px solid #ddd; }
    .status-passed { color: #4caf50; }
    .status-failed { color: #f44336; }
    .status-flaky { color: #ff9800; }
    .status-skipped { color: #999; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>Test Monitoring Dashboard</h1>
      <p>Generated: {{ report.generated_at.strftime("%Y-%m-%d %H:%M:%S") }}</p>
      <div class="health-score {{ health_class(report.summary.health_score) }}">{{ report.summary.health_score }}%</div>
    </div>

    <div class="metrics">
      <div class="metric-card">
        <div class="metric-label">Total Tests</div>
        <div class="metric-value">{{ report.summary.total_tests }}</div>
      </div>
      <div class="metric-card">
        <div class="metric-label">Passing Tests</div>
        <div class="metric-value" style="color: #4caf50">{{ report.summary.passing_tests }}</div>
      </div>
      <div class="metric-card">
        <div class="metric-label">Failing Tests</div>
        <div class="metric-value" style="color: #f44336">{{ report.summary.failing_tests }}</div>
      </div>
      <div class="metric-card">
        <div class="metric-label">Flaky Tests</div>
        <div class="metric-value" style="color: #ff9800">{{ report.summary.flaky_tests }}</div>
      </div>
    </div>

    {% if report.critical_issues %}
    <div class="issues">
      <h3>Critical Issues</h3>
      <ul>
        {% for issue in report.critical_issues %}<li>{{ issue }}</li>{% endfor %}
      </ul>
    </div>
    {% endif %}

    {% if report.recommendations %}
    <div class="recommendations">
      <h3>Recommendations</h3>
      <ul>
        {% for recommendation in report.recommendations %}<li>{{ recommendation }}</li>{% endfor %}
      </ul>
    </div>
    {% endif %}

    <div class="test-list">
      <h3>Recent Test Results</h3>
      <table>
        <thead>
          <tr><th>Test Name</th><th>Status</th><th>Duration</th><th>Time</th></tr>
        </thead>
        <tbody>
          {% for result in recent %}
          <tr>
            <td>{{ result.test_name }}</td>
            <td class="status-{{ result.status.value }}">{{ result.status.value }}</td>
            <td>{{ "%.1f"|format(result.duration / 1000) }}s</td>
            <td>{{ result.timestamp.strftime("%H:%M:%S") }}</td>
          </tr>
          {% endfor %}
        </tbody>
      </table>
    </div>
  </div>
</body>
</html>
"""


def health_class(score: int) -> str:
    if score >= 80:
        return "health-good"
    if score >= 60:
        return "health-warning"
    return "health-critical"


def render_dashboard(report: MonitoringReport) -> str:
    """Render the report as a self-refreshing HTML page, newest results first."""
    env = Environment(autoescape=True)
    template = env.from_string(DASHBOARD_TEMPLATE)
    return template.render(
        report=report,
        recent=list(reversed(report.test_history[-RECENT_RESULTS:])),
        health_class=health_class,
    )
