"""
Prompt building functions for process analysis.

Both prompts send the batch as CSV and ask for abbreviated JSON keys, which
keeps input and output token counts low when many batches are analyzed.
"""

from typing import List

from .records import ProcessSample


SYSTEM_PROCESS_NAMES = (
    'System', 'Registry', 'smss.exe', 'csrss.exe', 'wininit.exe', 'services.exe',
    'lsass.exe', 'svchost.exe', 'winlogon.exe', 'dwm.exe', 'spoolsv.exe', 'explorer.exe',
    'taskhostw.exe', 'conhost.exe', 'sihost.exe', 'fontdrvhost.exe', 'Memory Compression',
)


def format_process_csv(processes: List[ProcessSample]) -> str:
    """CSV lines of name,cpu%,memoryMB."""
    return '\n'.join(
        f'{p.name},{p.cpu_percent:.1f},{p.memory_mb:.0f}' for p in processes
    )


def format_dev_mode_csv(processes: List[ProcessSample]) -> str:
    """CSV lines of name,cpu%,privateMB,workingSetMB."""
    lines = []
    for p in processes:
        working_set = p.working_set_mb if p.working_set_mb is not None else p.memory_mb
        lines.append(f'{p.name},{p.cpu_percent:.1f},{p.memory_mb:.0f},{working_set:.0f}')
    return '\n'.join(lines)


def build_classification_prompt(processes: List[ProcessSample]) -> str:
    """
    Build the risk classification prompt for one batch.

    Args:
        processes (list): The batch of process samples

    Returns:
        str: Formatted prompt for the AI model
    """
    system_names = ', '.join(SYSTEM_PROCESS_NAMES)

    prompt = 'Act as a Senior Windows System Administrator and Security Analyst. '
    prompt += 'Classify each running process below by risk and decide whether it should be kept.\n\n'

    prompt += 'Input Format: "Process Name, CPU Usage (%), Private Memory (MB)"\n'
    prompt += 'Private Memory is RAM unique to the process. High private memory in a background task '
    prompt += 'often points to a leak or to bloatware.\n\n'

    prompt += '**Keep flag (k):**\n'
    prompt += f'- k MUST be true for every Windows kernel and OS process, including {system_names}, '
    prompt += 'and any process with PID 0 or 4.\n'
    prompt += '- k MUST be true for active user applications (browsers, games, IDEs, media players).\n'
    prompt += '- k is false only for bloatware, background updaters, telemetry agents, '
    prompt += 'non-essential utilities and security threats.\n'
    prompt += '- Security threats MUST have k false even though they are flagged as high risk.\n\n'

    prompt += '**Risk category (r), use exactly one of:**\n'
    prompt += '- SystemCritical: essential Windows kernel and OS processes that must never be terminated '
    prompt += '(including PID 0 and PID 4).\n'
    prompt += '- Safe: standard user applications and non-critical Windows utilities.\n'
    prompt += '- Bloat: OEM pre-installs, unnecessary updaters, telemetry agents, or background services '
    prompt += 'using more than 150MB private memory without user interaction.\n'
    prompt += '- Critical: security threats such as malware, miners, trojans, ransomware or '
    prompt += 'masquerading processes.\n'
    prompt += '- Unknown: names that cannot be categorized with confidence.\n\n'

    prompt += '**Description (d):** under 400 characters. Name the vendor or application. '
    prompt += 'For SystemCritical processes always state "Essential Windows System Process - DO NOT TERMINATE". '
    prompt += 'Mention "Inefficient resource usage" when a simple utility uses more than 100MB private memory.\n\n'

    prompt += 'Process data:\n'
    prompt += format_process_csv(processes) + '\n\n'

    prompt += '**CRITICAL: RETURN JSON ONLY**\n'
    prompt += '- Return ONLY a JSON array, no explanation, no preamble, no markdown code fences\n'
    prompt += '- Format: [{"n":"process_name.exe","r":"SystemCritical|Safe|Bloat|Critical|Unknown",'
    prompt += '"d":"description","k":true|false}]\n'
    prompt += '- n is the exact process name from the input\n\n'
    prompt += 'Return JSON array only:'
    return prompt


def build_dev_mode_prompt(processes: List[ProcessSample]) -> str:
    """
    Build the memory-profiling ("dev mode") prompt for one batch.

    Args:
        processes (list): The batch of process samples, with working_set_mb where available

    Returns:
        str: Formatted prompt for the AI model
    """
    prompt = 'Act as a Windows performance engineer profiling memory behavior. '
    prompt += 'For each process compare its Private Working Set with its total Working Set '
    prompt += 'to find leaks and inefficient memory use.\n\n'

    prompt += 'Input Format: "Process Name, CPU Usage (%), Private Working Set (MB), Working Set (MB)"\n'
    prompt += '- Private Working Set: memory that only this process uses.\n'
    prompt += '- Working Set: all resident memory, including pages shared with other processes.\n\n'

    prompt += '**Type (type), use exactly one of:**\n'
    prompt += '- Leak: private memory far above what the application normally needs, or dominating the working set '
    prompt += 'of an idle process.\n'
    prompt += '- Inefficient: high memory or CPU for the work the process performs.\n'
    prompt += '- Normal: usage consistent with the application.\n'
    prompt += '- Suspicious: usage patterns or names that suggest malware or masquerading.\n\n'

    prompt += 'Windows kernel and OS processes (including PID 0 and PID 4) are Normal unless the numbers '
    prompt += 'are clearly abnormal, and must never be recommended for termination.\n\n'

    prompt += 'Process data:\n'
    prompt += format_dev_mode_csv(processes) + '\n\n'

    prompt += '**CRITICAL: RETURN JSON ONLY**\n'
    prompt += '- Return ONLY a JSON array, no explanation, no preamble, no markdown code fences\n'
    prompt += '- Format: [{"n":"process_name.exe","type":"Leak|Inefficient|Normal|Suspicious",'
    prompt += '"analysis":"under 300 characters","recommendation":"short action"}]\n'
    prompt += '- n is the exact process name from the input\n\n'
    prompt += 'Return JSON array only:'
    return prompt
