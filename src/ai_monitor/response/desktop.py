# Response - Desktop Collaborators
#
# Toast notifications and the blocking allow/block prompt shown to the
# operator. Windows uses PowerShell + WinForms; other desktops use
# notify-send / zenity when installed.
#
# Text is passed to PowerShell through environment variables, never
# interpolated into the script.

import os
import shutil
import subprocess
import sys

from ..exceptions import NotificationFailed, PromptFailed, PromptTimeout

TOAST_TIMEOUT = 15  # seconds

PROMPT_TITLE = "AI Monitoring Alert"

_TOAST_SCRIPT = """
Add-Type -AssemblyName System.Windows.Forms
Add-Type -AssemblyName System.Drawing
$notification = New-Object System.Windows.Forms.NotifyIcon
$notification.Icon = [System.Drawing.SystemIcons]::Information
$notification.BalloonTipIcon = "Info"
$notification.BalloonTipText = $env:AI_MONITOR_MESSAGE
$notification.BalloonTipTitle = $env:AI_MONITOR_TITLE
$notification.Visible = $true
$notification.ShowBalloonTip(5000)
Start-Sleep -Seconds 1
$notification.Dispose()
"""

_PROMPT_SCRIPT = """
Add-Type -AssemblyName System.Windows.Forms
Add-Type -AssemblyName System.Drawing

$form = New-Object System.Windows.Forms.Form
$form.Text = $env:AI_MONITOR_TITLE
$form.Size = New-Object System.Drawing.Size(500, 250)
$form.StartPosition = "CenterScreen"
$form.TopMost = $true

$label = New-Object System.Windows.Forms.Label
$label.Location = New-Object System.Drawing.Point(20, 20)
$label.Size = New-Object System.Drawing.Size(450, 80)
$label.Text = "AI tool usage detected:`n`nTool: $env:AI_MONITOR_TOOL`nApplication: $env:AI_MONITOR_PROCESS`n`nDo you want to allow this activity?"
$form.Controls.Add($label)

$allowButton = New-Object System.Windows.Forms.Button
$allowButton.Location = New-Object System.Drawing.Point(150, 120)
$allowButton.Size = New-Object System.Drawing.Size(80, 30)
$allowButton.Text = "Allow"
$allowButton.DialogResult = [System.Windows.Forms.DialogResult]::Yes
$form.Controls.Add($allowButton)

$blockButton = New-Object System.Windows.Forms.Button
$blockButton.Location = New-Object System.Drawing.Point(250, 120)
$blockButton.Size = New-Object System.Drawing.Size(80, 30)
$blockButton.Text = "Block"
$blockButton.DialogResult = [System.Windows.Forms.DialogResult]::No
$form.Controls.Add($blockButton)

$result = $form.ShowDialog()

switch ($result) {
  "Yes" { Write-Output "allow" }
  default { Write-Output "block" }
}
"""

# zenity --question exit codes
_ZENITY_OK = 0
_ZENITY_CANCEL = 1
_ZENITY_TIMEOUT = 5


def _powershell(script: str, env_vars: dict, timeout: float) -> subprocess.CompletedProcess:
    env = dict(os.environ)
    env.update(env_vars)
    return subprocess.run(
        ["powershell", "-NoProfile", "-NonInteractive", "-Command", script],
        capture_output=True, text=True, timeout=timeout, env=env,
        creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
    )


def show_toast(title: str, message: str) -> None:
    """Show a desktop notification.

    Raises:
        NotificationFailed: no notification backend, or it failed.
    """
    try:
        if sys.platform == "win32":
            result = _powershell(
                _TOAST_SCRIPT,
                {"AI_MONITOR_TITLE": title, "AI_MONITOR_MESSAGE": message},
                timeout=TOAST_TIMEOUT,
            )
        elif shutil.which("notify-send"):
            result = subprocess.run(
                ["notify-send", "--app-name=AI Monitor", title, message],
                capture_output=True, text=True, timeout=TOAST_TIMEOUT,
            )
        else:
            raise NotificationFailed("No notification backend available")
    except (OSError, subprocess.TimeoutExpired) as e:
        raise NotificationFailed(str(e)) from e

    if result.returncode != 0:
        raise NotificationFailed(
            f"Notification exited with {result.returncode}: {result.stderr.strip()}"
        )


def show_prompt(ai_tool: str, process_name: str, timeout: float) -> str:
    """Ask the operator whether to allow an AI tool. Blocks until answered.

    Returns:
        "allow" or "block"

    Raises:
        PromptTimeout: the operator did not answer within ``timeout``.
        PromptFailed: the prompt could not be shown.
    """
    if sys.platform == "win32":
        try:
            result = _powershell(
                _PROMPT_SCRIPT,
                {
                    "AI_MONITOR_TITLE": PROMPT_TITLE,
                    "AI_MONITOR_TOOL": ai_tool,
                    "AI_MONITOR_PROCESS": process_name,
                },
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise PromptTimeout(f"No answer within {timeout:.0f}s") from None
        except OSError as e:
            raise PromptFailed(str(e)) from e
        if result.returncode != 0:
            raise PromptFailed(f"Prompt exited with {result.returncode}: {result.stderr.strip()}")
        return result.stdout.strip().lower()

    if shutil.which("zenity"):
        text = (
            f"AI tool usage detected:\n\nTool: {ai_tool}\nApplication: {process_name}"
            "\n\nDo you want to allow this activity?"
        )
        try:
            result = subprocess.run(
                [
                    "zenity", "--question", "--no-markup",
                    f"--title={PROMPT_TITLE}", f"--text={text}",
                    "--ok-label=Allow", "--cancel-label=Block",
                    f"--timeout={max(1, int(timeout))}",
                ],
                capture_output=True, text=True, timeout=timeout + 5,
            )
        except subprocess.TimeoutExpired:
            raise PromptTimeout(f"No answer within {timeout:.0f}s") from None
        except OSError as e:
            raise PromptFailed(str(e)) from e

        if result.returncode == _ZENITY_OK:
            return "allow"
        if result.returncode == _ZENITY_CANCEL:
            return "block"
        if result.returncode == _ZENITY_TIMEOUT:
            raise PromptTimeout(f"No answer within {timeout:.0f}s")
        raise PromptFailed(f"zenity exited with {result.returncode}")

    raise PromptFailed("No interactive prompt backend available")
