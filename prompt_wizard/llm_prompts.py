DEFAULT_SYSTEM_MESSAGE = "You are a helpful assistant."

DIAGRAM_SYSTEM_MESSAGE = "You are a helpful assistant specialized in creating diagrams."


ENHANCE_PROMPT = """Enhance the following prompt:

{PROMPT}"""


DIAGRAM_PROMPT = """Based on the following project data, generate a Mermaid flowchart diagram:

{PROJECT_DATA}

Output only the Mermaid syntax within a single code block."""


CONNECTION_TEST_PROMPT = "Hello, this is a test prompt to verify the API connection."
