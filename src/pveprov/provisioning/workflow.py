"""End-to-end provisioning of one VM."""

from pathlib import Path
from typing import Callable

import httpx

from ..api.client import ProxmoxHost
from ..api.exceptions import PVEProvError, ProvisioningError
from ..models.request import ProvisionRequest
from ..utils.output import print_info, print_success, print_warning
from . import builder
from .allocator import DEFAULT_LOCK_FILE, allocate_vm_id, vmid_lock
from .cloudinit import configure_cloud_init
from .finalizer import ProvisionSummary, start_vm, wait_until_ready
from .images import ProgressCallback, ensure_image


class ProvisionWorkflow:
    """Run the provisioning steps for one request, in order.

    Any failure after the VM exists destroys it again before the error is
    raised. Teardown problems are reported as warnings and never replace
    the original error.
    """

    def __init__(
        self,
        host: ProxmoxHost,
        request: ProvisionRequest,
        http_client: httpx.AsyncClient | None = None,
        lock_file: Path = DEFAULT_LOCK_FILE,
        on_download_progress: ProgressCallback | None = None,
        notify: Callable[[str], None] = print_info,
        warn: Callable[[str], None] = print_warning,
        success: Callable[[str], None] = print_success,
    ) -> None:
        self.host = host
        self.request = request
        self.http_client = http_client
        self.lock_file = lock_file
        self.on_download_progress = on_download_progress
        self.notify = notify
        self.warn = warn
        self.success = success
        self.vmid: int | None = None

    async def teardown(self, vmid: int) -> None:
        """Best-effort destroy-and-purge of a half-built VM."""
        self.warn(f"Destroying VM {vmid} after failed provisioning...")
        try:
            await self.host.delete_vm(vmid, purge=True)
        except PVEProvError as e:
            self.warn(f"Cleanup of VM {vmid} failed, remove it manually: {e}")

    async def run(self, wait: bool = True) -> ProvisionSummary:
        """Provision the VM.

        Args:
            wait: Poll the guest's SSH port after start

        Returns:
            Summary of the new VM

        Raises:
            DownloadError: If the base image cannot be fetched
            ProvisioningError: If a hypervisor step fails
            ReadinessTimeout: If the guest does not come up in time (the VM stays)
        """
        request = self.request
        profile = request.profile

        image_path, downloaded = await ensure_image(profile.image, self.http_client, self.on_download_progress)
        if downloaded:
            self.success(f"Downloaded {profile.image.filename}")
        else:
            self.notify(f"Using cached image {image_path}")

        try:
            kind = await self.host.get_storage_kind(request.storage_id)
        except PVEProvError as e:
            raise ProvisioningError("describe storage", None, e)
        self.notify(f"Storage {request.storage_id} uses {kind.value} volume naming")

        with vmid_lock(self.lock_file):
            try:
                vmid = await allocate_vm_id(self.host, request.vm_id)
            except PVEProvError as e:
                raise ProvisioningError("allocate VM ID", request.vm_id, e)
            self.notify(f"Creating VM {vmid} ({request.vm_name})...")
            try:
                await builder.create_vm_shell(self.host, vmid, request)
            except PVEProvError as e:
                raise ProvisioningError("create VM", vmid, e)
        self.vmid = vmid

        step = "import disk"
        try:
            self.notify(f"Importing {image_path.name} into {request.storage_id}...")
            imported = await self.host.import_disk(vmid, str(image_path), request.storage_id)

            step = "attach boot disk"
            candidates = builder.boot_disk_candidates(request.storage_id, kind, vmid, imported)
            volume = await builder.attach_boot_disk(
                self.host,
                vmid,
                candidates,
                on_retry=lambda volid, e: self.warn(f"Attaching {volid} failed, trying next name: {e}"),
            )

            step = "set boot order"
            await builder.set_boot_order(self.host, vmid)

            resize_error = await builder.resize_boot_disk(self.host, vmid, request.disk_gb)
            if resize_error:
                self.warn(f"Resizing disk to {request.disk_gb}G failed, keeping image size: {resize_error}")

            step = "add cloud-init drive"
            await builder.add_cloudinit_drive(self.host, vmid, request.storage_id)

            step = "configure cloud-init"
            snippet = await configure_cloud_init(self.host, vmid, request)
            self.notify(f"Cloud-init script written to {snippet}")

            step = "start VM"
            await start_vm(self.host, vmid)
        except Exception as e:
            await self.teardown(vmid)
            raise ProvisioningError(step, vmid, e)

        self.success(f"VM {vmid} started")
        summary = ProvisionSummary.from_request(request, vmid, boot_volume=volume)

        if wait:
            self.notify(f"Waiting for SSH on {request.ip_address}:{profile.ssh.port}...")
            summary.ready_after = await wait_until_ready(request.ip_address, profile.readiness, profile.ssh.port)
        return summary
