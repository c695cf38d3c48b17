REQUIREMENTS_PROMPT = """You are an information extractor for recruiting.
Extract ALL specific skills and requirements from the job description below.
Return ONLY valid JSON matching this exact schema:

{{
  "skills": ["skill1", "skill2"],
  "mustHave": ["critical_skill1", "critical_skill2"],
  "experience": ["requirement1", "requirement2"],
  "education": ["degree1", "degree2"]
}}

- Copy every phrase verbatim from the text; do not paraphrase or normalize.
- Extract EVERY specific skill, including technical tools (Jira, Azure DevOps, ...),
  methodologies (Scrum, Agile, Kanban, SAFe), certifications (Scrum Master, CSM, ...),
  soft skills (Leadership, Communication, ...) and process skills (Sprint Planning, ...).
- "mustHave" holds only what the text marks as required, mandatory or essential.
- If a list has nothing, return an empty list.

JOB DESCRIPTION:
{doc}
"""

PROFILE_PROMPT = """You are a precise resume parser.
Extract structured information from the resume below.
Return ONLY valid JSON matching this exact schema:

{{
  "personal": {{"name": "string", "email": "string", "phone": "string", "location": "string", "linkedin": "string"}},
  "experience": [
    {{
      "company": "string",
      "role": "string",
      "startDate": "YYYY-MM",
      "endDate": "YYYY-MM or Present",
      "achievements": ["string"],
      "skillsUsed": ["string"],
      "impactVerbs": ["implemented", "built", "led"]
    }}
  ],
  "education": [{{"institution": "string", "degree": "string", "field": "string", "year": "YYYY"}}],
  "skills": ["string"],
  "certifications": ["string"]
}}

- Use values exactly as written in the resume.
- Only list certifications the resume explicitly calls certified, a certification or a certificate.
- Use an empty string or empty list when something is absent. Never invent data.

RESUME:
{doc}
"""
