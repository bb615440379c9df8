from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Persistence: one snapshot record per application name
    snapshot_db_path: str = "./data/roundtable.db"
    storage_key: str = "long-form-ai-generator-storage"

    # Per-step models; names containing "claude" select Anthropic, everything else OpenAI
    topic_model: str = "gpt-4o-mini"
    research_model: str = "gpt-4o-mini"
    panel_model: str = "gpt-4o-mini"
    discussion_model: str = "gpt-4o"
    article_model: str = "gpt-4o"
    max_output_tokens: int = 8192

    # Web search grounding (Exa MCP)
    exa_mcp_url: str = "https://mcp.exa.ai/mcp"
    search_num_results: int = 8

    log_level: str = "INFO"

settings = Settings()
