"""Command recipes for common host setup tasks.

Each function returns a single command string ready for a CommandSpec.
Every caller-supplied value is quoted by the command builder.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from remoteops.utils import command_builder as cb

PACKAGE_MANAGERS = ("apt", "yum", "dnf")
LOG_SOURCES = ("docker", "systemd", "file")
NGINX_SITE_PATH = "/etc/nginx/sites-available/app"
NGINX_ENABLED_DIR = "/etc/nginx/sites-enabled/"


def detect_package_manager_command() -> str:
    return "which apt-get yum dnf 2>/dev/null | head -1"


def parse_package_manager(stdout: str) -> Optional[str]:
    """Map the output of :func:`detect_package_manager_command` to a manager name."""
    if "apt-get" in stdout:
        return "apt"
    if "yum" in stdout:
        return "yum"
    if "dnf" in stdout:
        return "dnf"
    return None


def install_packages_command(packages: Sequence[str], manager: str = "apt") -> str:
    if not packages:
        raise ValueError("no packages given")
    if manager not in PACKAGE_MANAGERS:
        raise ValueError(f"unsupported package manager: {manager!r}")
    names = cb.join(packages)
    if manager == "apt":
        noninteractive = {"DEBIAN_FRONTEND": "noninteractive"}
        return cb.chain(
            "sudo " + cb.with_env(noninteractive, "apt-get update"),
            "sudo " + cb.with_env(noninteractive, f"apt-get install -y {names}"),
        )
    return f"sudo {manager} install -y {names}"


def logs_command(source: str, target: str, lines: int = 50) -> str:
    """Tail recent logs from a container, a systemd unit or a file."""
    n = int(lines)
    if n <= 0:
        raise ValueError("lines must be positive")
    if source == "docker":
        return f"docker logs --tail {n} {cb.quote(target)} 2>&1"
    if source == "systemd":
        return f"journalctl -u {cb.quote(target)} -n {n} --no-pager"
    if source == "file":
        return f"tail -n {n} {cb.quote(target)}"
    raise ValueError(f"unknown log source: {source!r}")


def docker_run_command(
    image: str,
    name: str,
    ports: Optional[Mapping[int | str, int | str]] = None,
    env: Optional[Mapping[str, object]] = None,
    volumes: Iterable[str] = (),
) -> str:
    argv: list[object] = ["docker", "run", "-d", "--name", name, "--restart", "unless-stopped"]
    for host_port, container_port in (ports or {}).items():
        argv += ["-p", f"{host_port}:{container_port}"]
    for key, value in (env or {}).items():
        argv += ["-e", f"{key}={value}"]
    for volume in volumes:
        argv += ["-v", volume]
    argv.append(image)
    return cb.join(argv)


def nginx_site_config(
    server_name: str = "_", proxy_pass: Optional[str] = None, port: int = 80,
) -> str:
    if proxy_pass:
        location = (
            f"        proxy_pass {proxy_pass};\n"
            "        proxy_http_version 1.1;\n"
            "        proxy_set_header Upgrade $http_upgrade;\n"
            "        proxy_set_header Connection 'upgrade';\n"
            "        proxy_set_header Host $host;\n"
            "        proxy_set_header X-Real-IP $remote_addr;\n"
            "        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;\n"
            "        proxy_cache_bypass $http_upgrade;\n"
        )
    else:
        location = "        root /var/www/html;\n"
    return (
        "server {\n"
        f"    listen {int(port)};\n"
        f"    server_name {server_name};\n"
        "\n"
        "    location / {\n"
        f"{location}"
        "    }\n"
        "}\n"
    )


def nginx_site_command(
    server_name: str = "_", proxy_pass: Optional[str] = None, port: int = 80,
) -> str:
    """Write the site config, enable it and validate with ``nginx -t``.

    The config body is passed through a quoted here-document, so ``$host``
    and friends reach nginx untouched.
    """
    for value in (server_name, proxy_pass or ""):
        if any(c in value for c in ";{}\n"):
            raise ValueError(f"invalid nginx value: {value!r}")
    config = nginx_site_config(server_name, proxy_pass, port)
    enable = cb.chain(
        f"sudo ln -sf {cb.quote(NGINX_SITE_PATH)} {cb.quote(NGINX_ENABLED_DIR)}",
        f"sudo rm -f {cb.quote(NGINX_ENABLED_DIR + 'default')}",
        "sudo nginx -t",
    )
    return cb.write_file(NGINX_SITE_PATH, config, use_sudo=True, then=enable)


def registry_login_command(username: str, endpoint: str) -> str:
    """``docker login`` reading the password from stdin.

    Pair with ``CommandSpec(stdin=password)``; the password never appears
    on the command line.
    """
    return cb.join(["docker", "login", "--username", username, "--password-stdin", endpoint])
