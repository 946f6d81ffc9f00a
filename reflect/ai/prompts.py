"""Prompt builders for generation jobs."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

PREVIOUS_REFLECTION_EXCERPT_CHARS = 500

_CAREER_PLAN_OUTPUT = """## OUTPUT STRUCTURE
Generate the output in Markdown format. It must follow this structure precisely, containing only the headings and the bullet points.

#### Impact & Ownership
* (Expected scope of project ownership and influence.)
* (How they contribute to team goals and business outcomes.)

#### Craft & Expertise
* (Expected depth of technical or domain knowledge.)
* (Quality and execution of their work.)

#### Communication & Collaboration
* (Expected written and verbal communication.)
* (Their role in mentoring or guiding others.)

#### Strategic Focus
* (How they connect their work to the bigger picture.)
* (Proactivity and forward-thinking.)
"""


def build_career_plan_prompt(*, role: str, level: str, company_ladder: str | None = None, current_level_guidelines: str | None = None, current_level: str | None = None) -> str:
  """Build the career-progression prompt for one role and level."""
  lines = [
    "## CONTEXT",
    "You are an expert career management assistant for a platform that helps technology professionals track and foster their career growth.",
    "Avoid corporate jargon and focus on actionable, realistic guidance.",
    "",
    "## TASK",
    "Generate a foundational career progression profile based on established industry standards for the role and seniority level below.",
    "",
    "## INPUTS",
    f"1. **userRole**: {role}",
    f"2. **userLevel**: {level}",
  ]
  if company_ladder:
    lines.append(f"3. **Company Context**: {company_ladder}")

  if current_level_guidelines:
    reference_level = current_level or level
    lines += [
      "",
      "## REFERENCE CONTEXT",
      f"The following guidelines were generated for the current level ({reference_level}). Use them so the target level ({level}) reads as a natural progression:",
      "",
      current_level_guidelines,
      "",
      f"Expectations for {level} must build upon the {reference_level} expectations and show clear growth in scope, complexity and leadership.",
    ]

  lines += ["", _CAREER_PLAN_OUTPUT]
  return "\n".join(lines)


def build_reflection_prompt(*, job_title: str | None, seniority_level: str | None, highlights: Sequence[str], summary: str | None, previous_reflection: str | None, career_plan: str | None) -> str:
  """Build the weekly reflection prompt in ``## Done / ## Next / ## Notes`` form."""
  prompt = f"Generate a weekly reflection for a {seniority_level or 'professional'} {job_title or 'team member'}.\n"

  prompt += "\nWEEKLY ACTIVITY:\n"
  if summary:
    prompt += f"{summary}\n"
  if highlights:
    prompt += "".join(f"- {item}\n" for item in highlights)
  else:
    prompt += "- No integration activity was recorded this week; rely on the profile and previous context.\n"

  if previous_reflection:
    prompt += f"\nPREVIOUS WEEK'S REFLECTION (for continuity):\n{previous_reflection[:PREVIOUS_REFLECTION_EXCERPT_CHARS]}...\n"

  if career_plan:
    prompt += f"\nCAREER EXPECTATIONS:\n{career_plan}\n"

  prompt += """
REQUIREMENTS:
1. Create a structured reflection in the format: ## Done, ## Next, ## Notes
2. Under "Done" - List 3-5 specific accomplishments based on the actual activities
3. Under "Next" - Identify 2-3 concrete next steps based on current priorities
4. Under "Notes" - Include observations about challenges, learnings, or important context
5. Write in first person, using action verbs
6. Maintain continuity with previous week if context provided
7. Focus on impact and outcomes, not just activities

FORMAT:
Return as markdown text with clear sections."""
  return prompt


def build_assessment_prompt(*, cycle_name: str, job_title: str | None, seniority_level: str | None, snippets: Iterable[tuple[str, str]], career_plan: str | None, directions: str | None) -> str:
  """Build a performance self-assessment prompt from weekly snippets."""
  prompt = f"Draft a performance self-assessment for the cycle \"{cycle_name}\" written by a {seniority_level or 'professional'} {job_title or 'team member'}.\n"
  if career_plan:
    prompt += f"\nCAREER EXPECTATIONS:\n{career_plan}\n"
  prompt += "\nWEEKLY SNIPPETS:\n"
  for label, content in snippets:
    prompt += f"\n### {label}\n{content}\n"
  if directions:
    prompt += f"\nADDITIONAL DIRECTIONS:\n{directions}\n"
  prompt += """
REQUIREMENTS:
1. Summarize key accomplishments with concrete evidence from the snippets
2. Call out growth areas honestly
3. Write in first person with a professional tone
4. Return markdown only"""
  return prompt
