"""Prompt templates for the enrichment and extraction calls."""

SYSTEM_PROMPT = (
    "You help people save web content into note-taking apps. "
    "Answer in the same language as the content you are given."
)

SUMMARIZE = """Write a concise summary of the following content in at most 150 characters.

Content:
{content}

Requirements:
1. Keep the key facts and main points.
2. Plain, direct language that reads well in a notes app.
3. Return only the summary text."""

OPTIMIZE_TITLE = """Rewrite the title below so it works well as a note title in flomo or Apple Notes.

Original title: {title}

Content excerpt: {content}

Requirements:
1. At most 30 characters.
2. It must describe what the content is about.
3. No marketing language or clickbait.
4. Return only the new title, nothing else."""

CATEGORIZE = """Classify the following content.

Content: {content}

Return a JSON object with exactly these keys:
- "contentType": one of article, video, image, tutorial, review, news, recipe, travel, lifestyle, technology, entertainment, other
- "categories": at most 2 broad categories
- "tags": at most 5 specific tags, without a leading "#"

Return only the JSON object."""

EXTRACT_HTML = """Extract the main content from this HTML page.

URL: {url}

HTML:
{html}

Return a JSON object with exactly these keys:
- "title": the page title, or null
- "content": the main body text with navigation and ads removed, or null
- "images": a list of absolute URLs of content images (not avatars or icons), possibly empty
- "author": the author name, or null
- "publishedAt": the publication date as written on the page, or null

Use null for anything that is not present. Return only the JSON object."""
