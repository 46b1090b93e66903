"""
VoiceBrief Backend: Summary Email Template
==========================================

What:  Renders the notification document sent by the Delivery Service.
How:   A fixed HTML layout filled with the summary bullets, the next step,
       the full transcript and the generation date. Every user-supplied
       string is HTML-escaped. A plain-text rendering is produced for the
       text/plain alternative part.
"""

from datetime import datetime
from html import escape

from voicebrief.schemas.voice import Summary

SUBJECT_TEMPLATE = "Voice Conversation Summary - {date}"

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <style>
    body {{
      font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
      line-height: 1.6;
      color: #333;
      max-width: 600px;
      margin: 0 auto;
      padding: 20px;
      background-color: #f4f4f4;
    }}
    .container {{
      background-color: #ffffff;
      border-radius: 10px;
      padding: 30px;
      box-shadow: 0 2px 10px rgba(0,0,0,0.1);
    }}
    .header {{
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      color: white;
      padding: 20px;
      border-radius: 8px 8px 0 0;
      margin: -30px -30px 30px -30px;
    }}
    .header h1 {{ margin: 0; font-size: 24px; }}
    .section {{ margin: 25px 0; }}
    .section-title {{
      color: #667eea;
      font-size: 18px;
      font-weight: 600;
      margin-bottom: 15px;
      border-bottom: 2px solid #667eea;
      padding-bottom: 5px;
    }}
    .bullets {{ list-style: none; padding: 0; }}
    .bullets li {{ padding: 10px 0 10px 30px; position: relative; }}
    .bullets li:before {{
      content: "\\2713";
      position: absolute;
      left: 0;
      color: #667eea;
      font-weight: bold;
      font-size: 18px;
    }}
    .next-step {{
      background-color: #f0f4ff;
      border-left: 4px solid #667eea;
      padding: 15px 20px;
      margin: 20px 0;
      border-radius: 4px;
      font-weight: 500;
    }}
    .transcript-section {{
      background-color: #f9f9f9;
      padding: 15px;
      border-radius: 5px;
      margin: 20px 0;
      font-size: 14px;
      color: #666;
      white-space: pre-wrap;
    }}
    .footer {{
      margin-top: 30px;
      padding-top: 20px;
      border-top: 1px solid #eee;
      text-align: center;
      color: #999;
      font-size: 12px;
    }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>Voice Conversation Summary</h1>
    </div>

    <div class="section">
      <div class="section-title">Key Points</div>
      <ul class="bullets">
        {bullets}
      </ul>
    </div>

    <div class="section">
      <div class="section-title">Next Step</div>
      <div class="next-step">{next_step}</div>
    </div>

    <div class="section">
      <div class="section-title">Full Transcript</div>
      <div class="transcript-section">{transcript}</div>
    </div>

    <div class="footer">
      <p>Generated on {generated_on}</p>
      <p>{sender_name} System</p>
    </div>
  </div>
</body>
</html>
"""


def format_generated_on(moment: datetime) -> str:
    # e.g. "Monday, January 15, 2024, 02:30 PM"
    return moment.strftime("%A, %B %d, %Y, %I:%M %p")


def render_subject(moment: datetime) -> str:
    return SUBJECT_TEMPLATE.format(date=moment.strftime("%m/%d/%Y"))


def render_html(summary: Summary, transcript: str, moment: datetime, sender_name: str) -> str:
    bullets = "\n        ".join(f"<li>{escape(bullet)}</li>" for bullet in summary.bullets)
    return HTML_TEMPLATE.format(
        bullets=bullets,
        next_step=escape(summary.next_step),
        transcript=escape(transcript),
        generated_on=escape(format_generated_on(moment)),
        sender_name=escape(sender_name),
    )


def render_text(summary: Summary, transcript: str, moment: datetime) -> str:
    lines = ["Voice Conversation Summary", "", "Key Points:"]
    lines.extend(f"  - {bullet}" for bullet in summary.bullets)
    lines.extend(["", f"Next Step: {summary.next_step}", "", "Full Transcript:", transcript, ""])
    lines.append(f"Generated on {format_generated_on(moment)}")
    return "\n".join(lines)
