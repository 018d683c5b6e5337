from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required for a env setting.

    Attributes:
        env_key (str): The key/name of the environment variable to read.
        val_type (str): The expected type of the environment variable's value. Supported types are "string", "number" and "bool".
        default (str | int | bool | None): An optional default value if the environment variable is not set. If None, the variable is required and an error will be raised if it is not set.
    """

    # Core identity
    env_key: str
    val_type: str
    default: str | int | bool | None = None


class EmbedCredentialSource(BaseModel):
    """
    One named entry of the ordered embedding credential fallback list.

    Attributes:
        name (str): Human-readable name of the source, used for logging (e.g. "dedicated").
        api_key_env (str): Environment variable holding the API key of this source.
        base_url_envs (list[str]): Environment variables checked in order for the base URL.
        default_base_url (str): Base URL used when none of base_url_envs is set.
        prefix_bare_models (bool): Whether bare model ids must be namespaced (e.g. "openai/<model>") for this gateway.
    """

    name: str
    api_key_env: str
    base_url_envs: list[str] = []
    default_base_url: str
    prefix_bare_models: bool = False


class EmbedCredentials(BaseModel):
    """
    Fully resolved embedding backend settings.

    Attributes:
        source (str): Name of the credential source the settings were resolved from.
        api_key (str): Bearer token for the embedding backend.
        base_url (str): Base URL of the OpenAI-compatible API (e.g. "https://api.openai.com/v1").
        model (str): Model identifier sent with every request.
        dimensions (int): Expected length of every returned vector.
    """

    source: str
    api_key: str
    base_url: str
    model: str
    dimensions: int
