# models.py

from pydantic import BaseModel, Field


class SSHConfig(BaseModel):
    """
    SSH configuration for connecting to a remote host with public-key auth.
    Host keys are never verified: the nodes are freshly provisioned and have no
    known keys yet. The private key is parsed lazily by run_ssh_command so that a
    malformed key surfaces as a CredentialError on first use.
    """

    user: str = "ubuntu"
    hostname: str
    port: int = Field(default=22, ge=1, le=65535)
    private_key: str = Field(repr=False)
    connect_timeout: int = Field(default=10, ge=1)
