"""Email template generation for risk alerts."""

from html import escape
from typing import List

# Background hex per risk badge class; any other class renders green.
BADGE_BACKGROUNDS = {
    'bg-rose-50': '#fff1f2',
    'bg-orange-50': '#fff7ed',
}
DEFAULT_BADGE_BACKGROUND = '#f0fdf4'


def build_alert_subject(risk_level: str, location_name: str) -> str:
    """Subject line for a risk alert email."""
    return f"[AsthmaGuard] {risk_level} Risk Alert for {location_name}"


def generate_email_html(
    location_name: str,
    risk_level: str,
    risk_bg_color: str,
    triggers: List[str],
    advice: List[str]
) -> str:
    """
    Render the HTML body of a risk alert.

    Args:
        location_name: Place the readings were taken for
        risk_level: Risk level label (Low/Moderate/High/Extreme)
        risk_bg_color: Background class of the risk level badge
        triggers: Trigger labels from the assessment
        advice: Advice lines from the assessment, one list item each

    Returns:
        HTML string suitable for an email body
    """
    bg_color = BADGE_BACKGROUNDS.get(risk_bg_color, DEFAULT_BADGE_BACKGROUND)
    trigger_text = escape(", ".join(triggers))
    advice_items = "".join(
        f'<li style="margin-bottom: 12px;">{escape(line)}</li>' for line in advice
    )

    return f"""
    <div style="font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; max-width: 600px; margin: 0 auto; border: 1px solid #e2e8f0; border-radius: 16px; overflow: hidden; background-color: #ffffff;">
      <div style="background-color: #4f46e5; padding: 32px; text-align: center;">
        <h1 style="color: #ffffff; margin: 0; font-size: 24px; letter-spacing: -0.02em;">AsthmaGuard Alert</h1>
      </div>
      <div style="padding: 32px;">
        <p style="font-size: 18px; color: #1e293b; margin-bottom: 24px;">Hello, we've detected environmental conditions in <strong>{escape(location_name)}</strong> that may affect your breathing.</p>

        <div style="background-color: {bg_color}; border-radius: 12px; padding: 24px; margin-bottom: 32px;">
          <h2 style="margin: 0 0 8px 0; font-size: 20px; color: #0f172a;">Risk Level: {escape(risk_level)}</h2>
          <p style="margin: 0; color: #475569; font-size: 14px;"><strong>Triggers Detected:</strong> {trigger_text}</p>
        </div>

        <h3 style="font-size: 16px; color: #0f172a; margin-bottom: 16px; text-transform: uppercase; letter-spacing: 0.05em;">Precautions to Take</h3>
        <ul style="padding-left: 20px; color: #334155; line-height: 1.6;">
          {advice_items}
        </ul>

        <div style="background-color: #f8fafc; border-radius: 12px; padding: 20px; margin-top: 32px;">
          <p style="margin: 0; font-size: 14px; color: #64748b; font-style: italic;">
            "Your health is our priority. Stay safe, stay prepared, and breathe easy."
          </p>
        </div>

        <div style="margin-top: 40px; padding-top: 24px; border-top: 1px solid #f1f5f9; text-align: center;">
          <p style="font-size: 12px; color: #94a3b8; margin: 0;">This is an automated health alert from AsthmaGuard.</p>
          <p style="font-size: 11px; color: #cbd5e1; margin-top: 8px;">To opt out of future alerts, please visit the app settings.</p>
        </div>
      </div>
    </div>
    """
