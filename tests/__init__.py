"""Test helpers for eks-deploy."""

from dataclasses import dataclass
import json
from pathlib import Path
import time
from typing import Any

from aiohttp import web
from aiohttp.test_utils import TestServer

API_KEY = "test-api-key-0123456789"

HEALTH = web.AppKey("health", dict)


@dataclass
class FakeBin:
    """A directory of fake command line tools placed first on the PATH.

    Every invocation of a fake tool is appended to a log file.
    """

    path: Path
    log: Path

    def add(self, name: str, body: str = "") -> Path:
        """Create a fake tool that runs the shell script body."""
        script = self.path / name
        script.write_text(
            "#!/bin/sh\n" f"printf '%s\\n' \"{name} $*\" >> \"$CALLS_LOG\"\n" + body
        )
        script.chmod(0o755)
        return script

    def calls(self, name: str | None = None) -> list[str]:
        """Return the logged invocations, optionally for one tool."""
        if not self.log.exists():
            return []
        lines = self.log.read_text().splitlines()
        if name is None:
            return lines
        return [line for line in lines if line.split(" ", 1)[0] == name]


def _authorized(request: web.Request) -> bool:
    return request.headers.get("x-api-key") == API_KEY


async def _health(request: web.Request) -> web.Response:
    state = request.app[HEALTH]
    if state["healthy"]:
        return web.json_response({"status": "UP", "service": "webapp-3tier"})
    return web.json_response({"status": "DOWN"}, status=503)


async def _root(request: web.Request) -> web.Response:
    return web.json_response(
        {"message": "Welcome to 3-Tier Web Application on AWS EKS", "version": "1.0.0"}
    )


async def _list_users(request: web.Request) -> web.Response:
    if not _authorized(request):
        return web.json_response({"message": "Forbidden"}, status=403)
    page = int(request.query.get("page", "0"))
    size = int(request.query.get("size", "10"))
    users = [
        {"id": i, "name": f"User {i}", "email": f"user{i}@example.com"}
        for i in range(1, size + 1)
    ]
    return web.json_response({"users": users, "total": len(users), "page": page, "size": size})


async def _create_user(request: web.Request) -> web.Response:
    if not _authorized(request):
        return web.json_response({"message": "Forbidden"}, status=403)
    data = await request.json()
    if not data.get("name") or not data.get("email"):
        return web.json_response(
            {"error": "Missing required fields: name and email", "status": "BAD_REQUEST"},
            status=400,
        )
    user = {
        "id": int(time.time() * 1000) % 10000,
        "name": data["name"],
        "email": data["email"],
        "age": data.get("age", 0),
        "status": "active",
    }
    return web.json_response(
        {"message": "User created successfully", "user": user}, status=201
    )


async def _get_user(request: web.Request) -> web.Response:
    if not _authorized(request):
        return web.json_response({"message": "Forbidden"}, status=403)
    user_id = int(request.match_info["id"])
    if user_id > 1000:
        return web.json_response({"error": "User not found"}, status=404)
    return web.json_response({"user": {"id": user_id, "name": f"User {user_id}"}})


async def _info(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


def mock_api_app() -> web.Application:
    """An application that serves the routes of the deployed API."""
    app = web.Application()
    app[HEALTH] = {"healthy": True}
    app.router.add_get("/health", _health)
    app.router.add_get("/", _root)
    app.router.add_get("/v1/users", _list_users)
    app.router.add_post("/v1/users", _create_user)
    app.router.add_get("/v1/users/{id}", _get_user)
    app.router.add_get("/api/system", _info)
    app.router.add_get("/api/metrics", _info)
    return app


def server_url(server: TestServer) -> str:
    return f"http://{server.host}:{server.port}"


def set_healthy(server: TestServer, healthy: bool) -> None:
    server.app[HEALTH]["healthy"] = healthy


ACCOUNT_ID = "123456789012"
REPOSITORY = f"{ACCOUNT_ID}.dkr.ecr.us-west-2.amazonaws.com/webapp-3tier"
CERTIFICATE_ARN = f"arn:aws:acm:us-west-2:{ACCOUNT_ID}:certificate/abc"
DB_ENDPOINT = "webapp-db.abc.us-west-2.rds.amazonaws.com:5432"
UNREACHABLE_HOST = "127.0.0.1:1"

TFVARS_EXAMPLE = """\
aws_region  = "us-west-2"
domain_name = "example.com"
db_password = "ChangeMe123!"
"""

TFVARS = """\
aws_region  = "us-west-2"
domain_name = "webapp.example.org"
db_password = "s3cret-Passw0rd"
"""

DEPLOYMENT_YAML = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: webapp-3tier
  annotations:
    eks.amazonaws.com/role-arn: arn:aws:iam::ACCOUNT_ID:role/webapp-3tier-pod-role
---
apiVersion: v1
kind: Secret
metadata:
  name: webapp-secrets
data:
  db-host: # Base64 encoded RDS endpoint
"""

INGRESS_YAML = """\
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: webapp-ingress
  annotations:
    alb.ingress.kubernetes.io/certificate-arn: CERTIFICATE_ARN
    alb.ingress.kubernetes.io/security-groups: ALB_SECURITY_GROUP_ID
    alb.ingress.kubernetes.io/subnets: PUBLIC_SUBNET_IDS
"""


def write_project(path: Path, tfvars: str | None = TFVARS) -> Path:
    """Create a project directory with configuration, app and manifests."""
    (path / "app").mkdir(parents=True)
    (path / "app" / "Dockerfile").write_text("FROM scratch\n")
    (path / "k8s").mkdir()
    (path / "k8s" / "deployment.yaml").write_text(DEPLOYMENT_YAML)
    (path / "k8s" / "ingress.yaml").write_text(INGRESS_YAML)
    (path / "terraform.tfvars.example").write_text(TFVARS_EXAMPLE)
    if tfvars is not None:
        (path / "terraform.tfvars").write_text(tfvars)
    return path


def terraform_outputs(gateway_url: str | None) -> dict[str, Any]:
    """Outputs in the format of `terraform output -json`."""
    values: dict[str, Any] = {
        "cluster_name": "webapp-3tier-cluster",
        "ecr_repository_url": REPOSITORY,
        "rds_endpoint": DB_ENDPOINT,
        "certificate_arn": CERTIFICATE_ARN,
        "alb_security_group_id": "sg-0123456789",
        "public_subnets": ["subnet-a", "subnet-b"],
        "api_key": API_KEY,
    }
    if gateway_url:
        values["api_gateway_url"] = gateway_url
    return {
        name: {"sensitive": name == "api_key", "type": "string", "value": value}
        for name, value in values.items()
    }


def api_outputs(gateway_url: str) -> dict[str, Any]:
    """Only the outputs the smoke test reads, as a partial apply leaves them."""
    return {
        "api_gateway_url": {"sensitive": False, "type": "string", "value": gateway_url},
        "api_key": {"sensitive": True, "type": "string", "value": API_KEY},
    }


def terraform_script(outputs: dict[str, Any]) -> str:
    """Body of a fake terraform whose state holds the outputs."""
    return f"""
case "$1" in
  output) echo '{json.dumps(outputs)}' ;;
esac
"""


def deployment_doc(
    ready: int,
    desired: int = 3,
    updated: int | None = None,
    generation: int = 2,
    observed_generation: int = 2,
) -> dict[str, Any]:
    """A Deployment as returned by `kubectl get deployment -o json`."""
    return {
        "metadata": {"name": "webapp-3tier", "generation": generation},
        "spec": {"replicas": desired},
        "status": {
            "observedGeneration": observed_generation,
            "replicas": desired,
            "updatedReplicas": desired if updated is None else updated,
            "readyReplicas": ready,
            "availableReplicas": ready,
        },
    }


def kubectl_script(deployment: dict[str, Any], ingress: dict[str, Any]) -> str:
    """Body of a fake kubectl serving a deployment and an ingress."""
    return f"""
case "$1" in
  get)
    case "$2" in
      deployment) echo '{json.dumps(deployment)}' ;;
      ingress) echo '{json.dumps(ingress)}' ;;
    esac ;;
  create) echo "apiVersion: v1" ;;
  apply)
    if [ "$2" = "-f" ] && [ "$3" = "-" ]; then
      cat > /dev/null
    fi ;;
esac
"""


def add_fake_tools(
    fake_bin: FakeBin,
    gateway_url: str | None = None,
    ready: int = 3,
    hostname: str = UNREACHABLE_HOST,
) -> None:
    """Add fakes for every tool used by the deployment pipeline."""
    deployment = deployment_doc(ready)
    ingress = {"status": {"loadBalancer": {"ingress": [{"hostname": hostname}]}}}
    fake_bin.add(
        "aws",
        f"""
case "$1" in
  sts) echo {ACCOUNT_ID} ;;
  ecr) echo registry-password ;;
  iam)
    if [ "$2" = "create-policy" ]; then
      echo arn:aws:iam::{ACCOUNT_ID}:policy/EKSTerraformDeploymentPolicy
    fi ;;
esac
""",
    )
    fake_bin.add("terraform", terraform_script(terraform_outputs(gateway_url)))
    fake_bin.add("kubectl", kubectl_script(deployment, ingress))
    fake_bin.add(
        "docker",
        """
if [ "$1" = "login" ]; then
  cat > /dev/null
fi
""",
    )
    fake_bin.add("helm")
