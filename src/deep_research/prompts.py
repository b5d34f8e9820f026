"""Prompts for the deep research engine."""

from datetime import datetime, timezone

RESEARCHER_SYSTEM_PROMPT = """You are an expert researcher. Today is {today}. Follow these instructions when responding:
  - You may be asked to research subjects that is after your knowledge cutoff, assume the user is right when presented with news.
  - The user is a highly experienced analyst, no need to simplify it, be as detailed as possible and make sure your response is correct.
  - Be highly organized.
  - Suggest solutions that I didn't think about.
  - Be proactive and anticipate my needs.
  - Treat me as an expert in all subject matter.
  - Mistakes erode my trust, so be accurate and thorough.
  - Provide detailed explanations, I'm comfortable with lots of detail.
  - Value good arguments over authorities, the source is irrelevant.
  - Consider new technologies and contrarian ideas, not just the conventional wisdom.
  - You may use high levels of speculation or prediction, just flag it for me.
  - You must provide links to sources used. Ideally these are inline e.g. [this documentation](https://documentation.com/this)
"""


def researcher_system_prompt(extra: str | None = None) -> str:
    prompt = RESEARCHER_SYSTEM_PROMPT.format(
        today=datetime.now(timezone.utc).isoformat()
    )
    if extra:
        prompt += f"  - {extra}\n"
    return prompt


WEB_SEARCH_PROMPT = """Search the web for the following query and return at most {max_results} results.
Each result needs a title, the relevant page content, the source url and the publication date if known.

Query: {query}
"""

QUERY_PLANNING_PROMPT = """Given the following prompt from the user, generate a list of SERP queries to research the topic. Ensure at least one is almost identical to the initial prompt. Return a maximum of {breadth} queries, but feel free to return less if the original prompt is clear. Make sure each query is unique and not similar to each other: <prompt>{prompt}</prompt>
"""

PRIOR_LEARNINGS_SUFFIX = """
Here are some learnings from previous research, use them to generate more specific queries: {learnings}
"""

LEARNING_EXTRACTION_PROMPT = """Given the following contents from a SERP search for the query <query>{query}</query>, generate a list of learnings from the contents. Return a maximum of {max_learnings} learnings, but feel free to return less if the contents are clear. Make sure each learning is unique and not similar to each other. The learnings should be concise and to the point, as detailed and information dense as possible. Make sure to include any entities like people, places, companies, products, things, etc in the learnings, as well as any exact metrics, numbers, or dates. The learnings will be used to research the topic further. Also return a maximum of {max_follow_ups} follow-up questions to research the topic further.

<contents>{contents}</contents>
"""

FOLLOW_UP_QUERY_TEMPLATE = """Previous research goal: {research_goal}
Follow-up directions:
{follow_up_questions}"""

REPORT_PROMPT = """Generate a comprehensive report focused on "{prompt}". The main research findings should be drawn from the learnings below, with the search queries and related questions explored serving as supplementary context. Focus on synthesizing the key insights into a coherent narrative around the main topic.

<learnings>{learnings}
</learnings>

<searchQueries>{search_queries}
</searchQueries>

<relatedQuestions>{questions}
</relatedQuestions>

<sources>{sources}
</sources>
"""

REPORT_TITLE_PROMPT = """Generate a punchy title (5 words) for the following report:

{report}
"""

SEARCH_AGENT_SYSTEM_PROMPT = """You are a researcher. For each query, search the web and then evaluate if the results are relevant and will help answer the following query.
Always call the evaluate tool exactly once after every searchWeb call, before searching again."""

SEARCH_AGENT_PROMPT = "Search the web for information about {query}"

RELEVANCE_PROMPT = """Evaluate whether the search results are relevant and will help answer the following query: "{query}". If the page already exists in the existing results, mark it as irrelevant.

<search_results>
{search_result}
</search_results>

<existing_results>
{existing_urls}
</existing_results>
"""

IRRELEVANT_RESULT_MESSAGE = (
    "Search results are irrelevant. Please search again with a more specific query."
)
RELEVANT_RESULT_MESSAGE = "Search results are relevant. End research for this query."
NOTHING_TO_EVALUATE_MESSAGE = (
    "There are no pending search results to evaluate. Call searchWeb first."
)

SINGLE_LEARNING_PROMPT = """The user is researching "{query}". The following search result were deemed relevant.
Generate a learning and a follow-up question from the following search result:

<search_result>
{search_result}
</search_result>
"""

AGENT_FOLLOW_UP_TEMPLATE = """Overall research goal: {query}
Previous search queries: {completed_queries}
Follow-up questions: {follow_up_questions}"""

CHAT_SYSTEM_PROMPT = """You are a helpful assistant.
Keep your responses concise and helpful.
You have a list of tools that you can use to help the user.
If there is no tool to use, you should respond normally with a markdown formatted text.
Do not call multiple tools at once.
Do not repeat the results of deep_research tool calls. You can report (max 2 sentences) that the tool has been used successfully.
"""
