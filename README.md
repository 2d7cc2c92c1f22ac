# clevofan

Fan control for Clevo laptops on Linux, split into two cooperating processes
that talk over a local stream socket:

- **`clevofan-controllerd`** is the daemon. It reads the CPU state and drives
  the fans through the embedded controller (EC), and answers requests on a
  local socket.
- **`clevofan-controller`** is the client. It connects to the daemon, polls
  component status and sets the CPU fan duty with a PID controller that aims
  for a target temperature.

## Installation

```
pip install .
```

## The daemon

```
sudo clevofan-controllerd [--socket-name NAME]
```

`--socket-name` defaults to `clevo-controler.sock`. On Linux the name lives in
the abstract socket namespace; elsewhere it is used as a file path.

At start-up the daemon registers two components:

- id `0`: an `IntelCpu` (`clevofan.intel_cpu`). It finds the RAPL package
  counter (`/sys/class/powercap/intel-rapl:N/energy_uj`, where `name` reads
  `package-0`) and the package thermal zone
  (`/sys/class/thermal/thermal_zoneN/temp`, where `type` reads
  `x86_pkg_temp`). Per-core usage and frequency come from `psutil`; package
  power is derived from the energy counter between refreshes. If the energy
  counter cannot be found the daemon exits with status 1.
- id `1`: a `Fan` (`clevofan.daemon_components`) that reads CPU and GPU fan
  RPM from EC registers and sets fixed duty cycles (0–100 %) or automatic
  mode. EC access goes through `/dev/port` (`clevofan.ec.PortIO`).

Component readings are refreshed every 3 seconds. Clients are served one at a
time. Because it needs `/dev/port` and the RAPL counter, the daemon is
normally run as root.

## The client

```
clevofan-controller
```

The socket name is taken from the `SOCKET_NAME` environment variable, then
from `SOCKET_NAME` in a `.env` file found from the current directory, and
otherwise defaults to `clevo-controler.sock`.

The client asks the daemon for its component list, requests every component's
status once a second, and every 2 seconds reads the CPU temperature
(component `0`) and sets the CPU fan duty (component `1`) from the PID output.
If it cannot connect to the daemon it exits with status 1.

## Configuration

The client looks for `configs.json` in the directory of the program being run
(`sys.argv[0]`) and loads it if it exists:

```json
{
  "cpu_method": "Pid",
  "gpu_method": "Pid",
  "cpu_pid_cfg": {"target_temp": 60000.0, "kp": 1.0, "ki": 0.5, "kd": 0.5, "smoothing_factor": 0.3},
  "gpu_pid_cfg": {"target_temp": 60000.0, "kp": 1.0, "ki": 0.5, "kd": 0.5, "smoothing_factor": 0.3}
}
```

These values are also the defaults used when the file is absent. Temperatures
are in millidegrees Celsius, as reported by the kernel. The PID output divided
by 100 is clamped to 0–100 percent and smoothed with `smoothing_factor`.

Only `"Pid"` is accepted as `cpu_method`; `"TableLookUp"` and `"TempRange"` are
recognised but rejected with `ControllerError`. The command itself does not
write the file; `clevofan.temp_control.Controller.save_to_json()` (or
`close()`, or leaving a `with Controller(path):` block) writes the current
settings there.

## Library use

The wire format can be used on its own:

```python
from clevofan.fields import TargetFanSpeed, FanIndex
from clevofan.proto import MsgBody, MsgPacket, MsgMode, MsgCommand

packet = MsgPacket(MsgMode.REQUEST, None, 0, 1, MsgCommand.SET_FAN_SPEED)
body = MsgBody(packet, [FanIndex.CPU.serialize(), TargetFanSpeed(50).serialize()])
```

`clevofan.proto.send_msg` and `clevofan.proto.recv_msg` frame such bodies over
a `clevofan.stream.SocketStream`; `clevofan.stream.StreamListener` accepts
connections on the daemon side. `clevofan.daemon_service.Service` and
`clevofan.client_service.Service` hold the two ends of the conversation.

## What it does not do

- There is no GPU support: the daemon registers no GPU component, and the
  client refuses a component list that contains one. The GPU fan is only
  controlled through explicit fan requests; the client drives the CPU fan only.
- Setting the CPU frequency (`SET_FREQ`) is accepted by the daemon but changes
  nothing.
- Fan curves by lookup table or temperature range are not available; only PID
  control is.
- There is no graphical interface or tray icon.

## Tests

```
pip install .[test]
pytest
```