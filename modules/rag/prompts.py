"""질의 보강 프롬프트 템플릿

{today}, {query} 자리표시자는 str.replace로 치환 (JSON 중괄호 보존)
"""

QUERY_ENHANCEMENT_PROMPT_TEMPLATE = """**CONTEXT**: Today's date is {today}. Use this to understand relative date references in the query.

Analyze this business query and provide:

1. enhanced_query: Improve the query for semantic search by expanding abbreviations and adding relevant terms. KEEP the original query terms and ADD date context when time is mentioned.

**DATE ENRICHMENT EXAMPLES (only add when dates/time are mentioned):**
- "last month" -> add the month name and year
- "last week" -> add the date range, e.g. "2025-10-07 to 2025-10-13"
- "Q3" -> add "third quarter July to September"
- "yesterday" -> add the calendar date

2. metadata_filters: Extract ONLY filters that are relevant to the query.
   IMPORTANT: If a metadata field is not referenced in the query, do not include it.

**business_units:** Which business unit(s) are relevant? (array of strings)
- Return as array: ["VX", "Demand"] or a single element: ["VX"]

**regions:** Which geographic regions are covered? (array of strings)
- "AMERICAS", "EMEA", "APAC"
- Use an empty array [] if no specific region is mentioned

**labels:** Which general semantic labels describe the content? (array of strings)
- Financial: revenue, margins, costs, budget
- Performance: performance, conversion, volume
- Time periods: qtd, weekly, monthly, daily, forecast
- Analysis types: summary, trends, comparison, insights, breakdown
- Be selective and only include clearly applicable labels

**generated_date:** The most recent date on which the relevant reports were generated (a single string in YYYY-MM-DD format, or null).
- This is when the content was created, not the data period it covers
- The search looks at the 7 days ending on this date, so pick the LAST day of the period of interest
- Return a date when temporal filtering is needed: explicit time mentions ("yesterday", "last week", "October"), recency indicators ("recent", "latest", "current"), trends and temporal comparisons
- Return null for knowledge or definition queries ("what is", "how to"), person or entity focused queries, comprehensive queries ("all", "complete history") and policy queries

**DATE SELECTION EXAMPLES:**
- "data as of Nov 10" -> "2025-11-10"
- "week of Nov 10" -> "2025-11-16"
- "latest weekly summary" -> "{today}"
- "what is ROAS" -> null

Query: {query}

Return JSON with "enhanced_query" and "metadata_filters" fields. Only include metadata fields that apply to the query."""
